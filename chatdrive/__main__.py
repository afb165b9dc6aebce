import sys

CLI_COMMANDS = (
    "login", "logout", "folders", "sync", "mkdir", "rmdir", "ls",
    "push", "pull", "rm", "mv", "search", "bandwidth",
)


def main() -> int:
    args = [a for a in sys.argv[1:] if a]
    if "--cli" in args or any(a in CLI_COMMANDS for a in args[:3]):
        from .cli import main as cli_main

        return cli_main([a for a in args if a != "--cli"])

    from .ui.qt_main import main as qt_main

    return qt_main(args)


if __name__ == "__main__":
    raise SystemExit(main())
