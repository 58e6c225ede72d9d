import shlex

from indexkv.bootstrap.config.loader import get_cli_args
from indexkv.bootstrap.deps import get_shell
from indexkv.core.helpers.utils import setup_logging


def main():
    cli = get_cli_args()
    setup_logging(cli.log_level)

    shell = get_shell()
    try:
        if cli.command:
            shell.onecmd(shlex.join(cli.command))
        else:
            shell.cmdloop()
    finally:
        shell.close()


if __name__ == "__main__":
    main()
