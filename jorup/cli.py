# jorup/cli.py
from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import List, Optional, TextIO

from dotenv import load_dotenv

from jorup import __version__
from jorup.models.version import InvalidVersionString, Version
from jorup.services import node_commands
from jorup.services.config import JorupConfig, resolve_home_dir

logger = logging.getLogger("jorup")

LOG_LEVEL_ENV = "JORUP_LOG_LEVEL"


def _version_arg(value: str) -> Version:
    try:
        return Version.parse(value)
    except InvalidVersionString as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="jorup",
        description="Manage jormungandr releases and blockchain channels",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument(
        "--jorup-home",
        default=None,
        help="Directory where jorup installs releases and channels "
        "(default: $JORUP_HOME or ~/.jorup)",
    )
    p.add_argument(
        "--jorfile",
        default=None,
        help="Use the given jorfile instead of the local one (testing only)",
    )
    p.add_argument(
        "--offline",
        action="store_true",
        help="Never query the release server; only use what is cached locally",
    )
    p.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: $JORUP_LOG_LEVEL or WARNING)",
    )

    sub = p.add_subparsers(dest="subcmd", required=True)

    p_install = sub.add_parser(
        "install",
        help="Install a jormungandr release (latest stable when nothing is given)",
    )
    p_install.add_argument(
        "-v",
        "--version",
        dest="install_version",
        type=_version_arg,
        default=None,
        help="Install a particular version. Cannot be used alongside --blockchain",
    )
    p_install.add_argument(
        "-b",
        "--blockchain",
        default=None,
        help="Install the latest version compatible with the given blockchain",
    )
    p_install.add_argument(
        "--make-default",
        action="store_true",
        help="Make the installed version the default",
    )

    sub.add_parser("list", help="List locally installed releases")

    p_remove = sub.add_parser("remove", help="Remove the specified release")
    p_remove.add_argument("release", type=_version_arg, metavar="VERSION")

    p_default = sub.add_parser("default", help="Show or set the default channel")
    p_default.add_argument("channel", nargs="?", default=None, metavar="CHANNEL")

    p_channel = sub.add_parser(
        "channel", help="Prepare a channel workspace and print its paths"
    )
    p_channel.add_argument("channel", nargs="?", default=None, metavar="CHANNEL")

    return p


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    return build_arg_parser().parse_args(argv)


def print_error_chain(error: BaseException, stream: Optional[TextIO] = None) -> None:
    out = stream if stream is not None else sys.stderr
    print(f"{error}", file=out)
    cause = error.__cause__
    while cause is not None:
        print(f" |-> {cause}", file=out)
        cause = cause.__cause__


def _configure_logging(level: Optional[str]) -> None:
    name = (level or os.getenv(LOG_LEVEL_ENV) or "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.WARNING),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stderr,
    )


def run(ns: argparse.Namespace) -> int:
    # request validation: nothing under the home dir may be created yet
    if ns.subcmd == "install" and ns.install_version is not None and ns.blockchain is not None:
        raise node_commands.ConflictingRequest()

    cfg = JorupConfig.open(
        resolve_home_dir(ns.jorup_home),
        jor_file=ns.jorfile,
        offline=ns.offline,
    )

    if ns.subcmd == "install":
        res = node_commands.install(
            cfg,
            version=ns.install_version,
            blockchain=ns.blockchain,
            make_default=ns.make_default,
        )
        print(f"jormungandr {res.release.version} installed in {res.release.dir}")
        if res.workspace is not None:
            print(f"channel {res.entry.channel} ready in {res.workspace.dir}")
        return 0

    if ns.subcmd == "list":
        for release in node_commands.list_releases(cfg):
            print(release)
        return 0

    if ns.subcmd == "remove":
        node_commands.remove(cfg, ns.release)
        return 0

    if ns.subcmd == "default":
        if ns.channel is None:
            print(node_commands.get_default(cfg))
        else:
            print(node_commands.set_default(cfg, ns.channel))
        return 0

    if ns.subcmd == "channel":
        ws = node_commands.prepare_channel(cfg, ns.channel)
        print(f"channel:      {ws.entry.channel}")
        print(f"directory:    {ws.dir}")
        print(f"genesis hash: {ws.genesis_block_hash}")
        print(f"node config:  {ws.node_config}")
        print(f"node storage: {ws.node_storage}")
        print(f"node secret:  {ws.node_secret}")
        print(f"logs:         {ws.log_file}")
        return 0

    raise RuntimeError(f"unknown subcmd: {ns.subcmd}")


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv(override=False)
    ns = parse_args(argv)
    _configure_logging(ns.log_level)

    try:
        return run(ns)
    except Exception as exc:  # noqa: BLE001
        logger.debug("command failed", exc_info=True)
        print_error_chain(exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
