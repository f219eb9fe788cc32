"""Development server entry point for the Happy InLine API."""
from __future__ import annotations

import os

from happyinline import create_app


def main() -> None:
    flask_app = create_app()
    debug_enabled = os.environ.get("FLASK_DEBUG", "0") in {"1", "true", "True"}

    if debug_enabled:
        print("\n=== Happy InLine routes ===")
        for rule in sorted(flask_app.url_map.iter_rules(), key=lambda r: r.rule):
            methods = ",".join(sorted(rule.methods - {"HEAD", "OPTIONS"}))
            print(f"{methods:<20} {rule.rule}")
        print("===========================\n")

    flask_app.run(host="0.0.0.0", port=int(os.environ.get("PORT", 5000)), debug=debug_enabled)


if __name__ == "__main__":
    main()
