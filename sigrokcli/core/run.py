"""Process-level run: acquire resources, build the decoder pipeline, dispatch, tear down."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sigrokcli.core.dispatch import dispatch, select_action
from sigrokcli.core.errors import ConfigurationError, LibraryError
from sigrokcli.core.options import OutputSink, RunOptions
from sigrokcli.core.pipeline import DecoderPipeline, build_decoder_pipeline
from sigrokcli.drivers.base import AcquisitionLibrary, DecoderLibrary
from sigrokcli.util.exit_codes import ExitCode
from sigrokcli.util.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RunState:
    """Handles owned by one invocation; a field is set only once its resource exists."""

    options: RunOptions
    acquisition: AcquisitionLibrary
    decoder: Optional[DecoderLibrary] = None
    sr_ctx: Any = None
    srd_ctx: Any = None
    srd_session: Any = None
    pipeline: Optional[DecoderPipeline] = None
    sink: Optional[OutputSink] = None
    released: List[str] = field(default_factory=list)

    @property
    def decoding_active(self) -> bool:
        return self.options.decoding_requested and self.decoder is not None

    def ledger(self) -> Dict[str, bool]:
        return {
            "acquisition_context": self.sr_ctx is not None,
            "decoder_context": self.srd_ctx is not None,
            "decoder_session": self.srd_session is not None,
        }


def acquire_resources(state: RunState) -> None:
    """Create the library contexts in order. Raises on the first failure."""

    opts = state.options
    acq = state.acquisition
    acq.set_verbosity(opts.loglevel)
    state.sr_ctx = acq.create_context()

    if opts.decoding_requested and state.decoder is None:
        logger.warning("Protocol decoder support not available, ignoring decoders '%s'.", opts.decoders)
    if not state.decoding_active:
        return

    dec = state.decoder
    assert dec is not None
    dec.set_verbosity(opts.loglevel)
    state.srd_ctx = dec.create_context()
    try:
        state.srd_session = dec.create_session(state.srd_ctx)
    except LibraryError as exc:
        logger.debug("create_session: %s", exc)
        raise ConfigurationError("Failed to create new decode session.") from exc


def teardown(state: RunState) -> None:
    """Release what the ledger says exists, newest first. Safe to call twice."""

    if state.srd_session is not None:
        assert state.decoder is not None
        session, state.srd_session = state.srd_session, None
        state.decoder.destroy_session_subsystem(session)
        state.released.append("decoder_session")
    if state.srd_ctx is not None:
        assert state.decoder is not None
        ctx, state.srd_ctx = state.srd_ctx, None
        state.decoder.destroy_context(ctx)
        state.released.append("decoder_context")
    if state.sr_ctx is not None:
        ctx, state.sr_ctx = state.sr_ctx, None
        state.acquisition.destroy_context(ctx)
        state.released.append("acquisition_context")


def execute(state: RunState) -> int:
    """Run one invocation against prepared library adapters.

    Returns 0 for every completed or contained run. A critical diagnostic
    raises CriticalAbort, which still passes through teardown.
    """

    try:
        acquire_resources(state)
        if state.decoding_active:
            state.pipeline = build_decoder_pipeline(state)
            state.sink = state.pipeline.sink
        action = select_action(state.options, state.decoding_active)
        logger.debug("Dispatching %s", action.value)
        dispatch(state, action)
    except ConfigurationError as exc:
        logger.critical("%s", exc)
    except LibraryError as exc:
        logger.error("%s", exc)
    finally:
        teardown(state)
    return ExitCode.SUCCESS


def run(
    options: RunOptions,
    acquisition: AcquisitionLibrary,
    decoder: Optional[DecoderLibrary] = None,
) -> int:
    state = RunState(options=options, acquisition=acquisition, decoder=decoder)
    return execute(state)
