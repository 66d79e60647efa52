"""Simple entrypoint printing the current laundry inventory overview."""

import json

from laundry_app.app import LaundryControlApp


def main() -> None:
    app = LaundryControlApp()
    print(json.dumps(app.inventory.overview(), indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
