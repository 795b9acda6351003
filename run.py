from __future__ import annotations

from backoffice import create_app


def main() -> None:
    flask_app = create_app()

    # show what routes are actually mounted
    print("\n=== URL MAP ===")
    for r in sorted(flask_app.url_map.iter_rules(), key=lambda x: x.rule):
        print(r)
    print("===============\n")

    flask_app.run(
        host="0.0.0.0",
        port=flask_app.config["PORT"],
        debug=flask_app.config["DEBUG"],
    )


if __name__ == "__main__":
    main()
