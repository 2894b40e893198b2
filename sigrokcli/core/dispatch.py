"""Single-shot action selection."""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING, Callable, Dict

from sigrokcli.core import actions
from sigrokcli.core.options import RunOptions

if TYPE_CHECKING:  # pragma: no cover
    from sigrokcli.core.run import RunState


class Action(enum.Enum):
    VERSION = "version"
    SCAN = "scan"
    SHOW_DECODERS = "show-decoders"
    SHOW_DEVICE = "show-device"
    LOAD_FILE = "load-file"
    SET_CONFIG = "set-config"
    RUN_SESSION = "run-session"
    HELP = "help"


def select_action(options: RunOptions, decoding_active: bool) -> Action:
    """Pick the first matching action in fixed priority order."""

    if options.version:
        return Action.VERSION
    if options.scan:
        return Action.SCAN
    if decoding_active and options.show:
        return Action.SHOW_DECODERS
    if options.show:
        return Action.SHOW_DEVICE
    if options.input_file:
        return Action.LOAD_FILE
    if options.set_config:
        return Action.SET_CONFIG
    if options.stop.requested:
        return Action.RUN_SESSION
    return Action.HELP


_HANDLERS: Dict[Action, Callable[["RunState"], None]] = {
    Action.VERSION: actions.show_version,
    Action.SCAN: actions.show_dev_list,
    Action.SHOW_DECODERS: actions.show_pd_detail,
    Action.SHOW_DEVICE: actions.show_dev_detail,
    Action.LOAD_FILE: actions.load_input_file,
    Action.SET_CONFIG: actions.set_options,
    Action.RUN_SESSION: actions.run_session,
    Action.HELP: actions.show_help,
}


def dispatch(state: "RunState", action: Action) -> None:
    _HANDLERS[action](state)
