import sys

from gitswitch.cli import run_cli


def main() -> None:
    args = sys.argv[1:]
    if "--gui" in args or "-g" in args:
        from gitswitch.gtk_gui import run_app
        run_app()
    elif "--tray" in args or "-t" in args:
        from gitswitch.tray import run_tray
        run_tray()
    else:
        run_cli()


if __name__ == "__main__":
    try:
        main()
    except Exception as exc:
        print(f"Fatal error: {exc}", file=sys.stderr)
        raise
