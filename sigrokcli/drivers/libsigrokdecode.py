"""libsigrokdecode backend over ctypes.

Only the stable prefix of the library structs is mapped. Decoder metadata
(channels, options, annotation and binary classes) is read from each
decoder's ``pd.py`` with ``ast`` instead of from ``struct srd_decoder``,
whose layout differs between releases.
"""

from __future__ import annotations

import ast
import ctypes
import ctypes.util
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np

from sigrokcli.core.errors import ConfigurationError, DecoderError
from sigrokcli.core.options import DecoderSpec, DecoderStack
from sigrokcli.drivers.base import (
    DecoderCallback,
    DecoderChannel,
    DecoderEvent,
    DecoderInfo,
    DecoderLibrary,
    DecoderOption,
)
from sigrokcli.util.logging import get_logger

logger = get_logger("sigrokcli.srd")

SRD_OK = 0
SRD_CONF_SAMPLERATE = 10000
OUTPUT_TYPES = {"annotation": 0, "binary": 2, "meta": 4}
DEFAULT_DECODER_DIRS = (
    "/usr/share/libsigrokdecode/decoders",
    "/usr/local/share/libsigrokdecode/decoders",
)


def _load(name: str) -> Optional[ctypes.CDLL]:
    path = ctypes.util.find_library(name)
    if not path:
        return None
    return ctypes.CDLL(path)


try:  # pragma: no cover - optional dependency
    _srd = _load("sigrokdecode")
    _glib = _load("glib-2.0")
    HAVE_SRD = _srd is not None and _glib is not None
except OSError:  # pragma: no cover - optional dependency
    _srd = None
    _glib = None
    HAVE_SRD = False


# ---------------------------------------------------------------------------
# Decoder metadata from pd.py sources
# ---------------------------------------------------------------------------

_DECODER_ATTRS = (
    "id",
    "name",
    "longname",
    "desc",
    "license",
    "channels",
    "optional_channels",
    "options",
    "annotations",
    "binary",
)


def _class_attrs(source: str) -> Dict[str, Any]:
    tree = ast.parse(source)
    for node in tree.body:
        if isinstance(node, ast.ClassDef) and node.name == "Decoder":
            attrs: Dict[str, Any] = {}
            for stmt in node.body:
                if not isinstance(stmt, ast.Assign) or len(stmt.targets) != 1:
                    continue
                target = stmt.targets[0]
                if not isinstance(target, ast.Name) or target.id not in _DECODER_ATTRS:
                    continue
                try:
                    attrs[target.id] = ast.literal_eval(stmt.value)
                except ValueError:
                    # Computed values (e.g. tuples built in a loop) are not shown.
                    continue
            return attrs
    return {}


def _class_pairs(entries: Iterable[Any]) -> List[Tuple[str, str]]:
    pairs: List[Tuple[str, str]] = []
    for entry in entries or ():
        if isinstance(entry, (tuple, list)) and len(entry) >= 2:
            pairs.append((str(entry[0]), str(entry[-1])))
    return pairs


def read_decoder_info(path: str) -> DecoderInfo:
    """Build a DecoderInfo from a decoder's pd.py file."""

    with open(path, "r", encoding="utf-8") as fh:
        attrs = _class_attrs(fh.read())
    if "id" not in attrs:
        raise DecoderError(f"No Decoder class with an id in {path}")
    channels = [
        DecoderChannel(id=str(ch.get("id")), name=str(ch.get("name", "")), desc=str(ch.get("desc", "")))
        for ch in attrs.get("channels", ())
    ]
    channels.extend(
        DecoderChannel(id=str(ch.get("id")), name=str(ch.get("name", "")), desc=str(ch.get("desc", "")), optional=True)
        for ch in attrs.get("optional_channels", ())
    )
    options = [
        DecoderOption(
            id=str(opt.get("id")),
            desc=str(opt.get("desc", "")),
            default=None if opt.get("default") is None else str(opt.get("default")),
            values=[str(v) for v in opt.get("values", ())],
        )
        for opt in attrs.get("options", ())
    ]
    return DecoderInfo(
        id=str(attrs["id"]),
        name=str(attrs.get("name", "")),
        longname=str(attrs.get("longname", "")),
        desc=str(attrs.get("desc", "")),
        license=str(attrs.get("license", "")),
        channels=channels,
        options=options,
        annotations=_class_pairs(attrs.get("annotations", ())),
        binary=_class_pairs(attrs.get("binary", ())),
    )


def decoder_dirs(extra: Iterable[str] = ()) -> List[str]:
    dirs: List[str] = []
    env = os.environ.get("SIGROKDECODE_DIR")
    candidates = ([env] if env else []) + list(extra) + list(DEFAULT_DECODER_DIRS)
    for path in candidates:
        if path and os.path.isdir(path) and path not in dirs:
            dirs.append(path)
    return dirs


def find_decoder(name: str, dirs: Iterable[str]) -> Optional[str]:
    for base in dirs:
        candidate = os.path.join(base, name, "pd.py")
        if os.path.isfile(candidate):
            return candidate
    return None


def option_value(info: DecoderInfo, key: str, text: str) -> Any:
    """Convert an option string to the type of the decoder's default value."""

    default = next((opt.default for opt in info.options if opt.id == key), None)
    if default is None:
        return text
    for kind in (int, float):
        try:
            kind(default)
        except ValueError:
            continue
        try:
            return int(text, 0) if kind is int else float(text)
        except ValueError as exc:
            raise ConfigurationError(
                f"Invalid value '{text}' for option '{key}' of protocol decoder '{info.id}'."
            ) from exc
    return text


# ---------------------------------------------------------------------------
# ctypes bindings
# ---------------------------------------------------------------------------


class _GSList(ctypes.Structure):
    pass


_GSList._fields_ = [("data", ctypes.c_void_p), ("next", ctypes.POINTER(_GSList))]


class _SrdPdOutput(ctypes.Structure):
    _fields_ = [
        ("pdo_id", ctypes.c_int),
        ("output_type", ctypes.c_int),
        ("di", ctypes.c_void_p),
        ("proto_id", ctypes.c_char_p),
    ]


class _SrdProtoData(ctypes.Structure):
    _fields_ = [
        ("start_sample", ctypes.c_uint64),
        ("end_sample", ctypes.c_uint64),
        ("pdo", ctypes.POINTER(_SrdPdOutput)),
        ("data", ctypes.c_void_p),
    ]


class _SrdAnnotation(ctypes.Structure):
    _fields_ = [("ann_class", ctypes.c_int), ("ann_text", ctypes.POINTER(ctypes.c_char_p))]


class _SrdBinary(ctypes.Structure):
    _fields_ = [
        ("bin_class", ctypes.c_int),
        ("size", ctypes.c_uint64),
        ("data", ctypes.POINTER(ctypes.c_uint8)),
    ]


_CALLBACK = ctypes.CFUNCTYPE(None, ctypes.POINTER(_SrdProtoData), ctypes.c_void_p)


def _bind() -> None:  # pragma: no cover - library specific
    vp, ip, cp, u64 = ctypes.c_void_p, ctypes.c_int, ctypes.c_char_p, ctypes.c_uint64
    sigs = {
        "srd_init": ([cp], ip),
        "srd_exit": ([], ip),
        "srd_log_loglevel_set": ([ip], ip),
        "srd_lib_version_string_get": ([], cp),
        "srd_searchpaths_get": ([], ctypes.POINTER(_GSList)),
        "srd_session_new": ([ctypes.POINTER(vp)], ip),
        "srd_session_destroy": ([vp], ip),
        "srd_session_start": ([vp], ip),
        "srd_session_metadata_set": ([vp, ip, vp], ip),
        "srd_session_send": ([vp, u64, u64, ctypes.POINTER(ctypes.c_uint8), u64, u64], ip),
        "srd_decoder_load": ([cp], ip),
        "srd_inst_new": ([vp, cp, vp], vp),
        "srd_inst_stack": ([vp, vp, vp], ip),
        "srd_inst_channel_set_all": ([vp, vp], ip),
        "srd_pd_output_callback_add": ([vp, ip, _CALLBACK, vp], ip),
    }
    for name, (argtypes, restype) in sigs.items():
        fn = getattr(_srd, name)
        fn.argtypes = argtypes
        fn.restype = restype
    gsigs = {
        "g_hash_table_new_full": ([vp, vp, vp, vp], vp),
        "g_hash_table_insert": ([vp, vp, vp], ip),
        "g_hash_table_unref": ([vp], None),
        "g_strdup": ([cp], vp),
        "g_free": ([vp], None),
        "g_variant_new_int64": ([ctypes.c_int64], vp),
        "g_variant_new_int32": ([ctypes.c_int32], vp),
        "g_variant_new_uint64": ([u64], vp),
        "g_variant_new_double": ([ctypes.c_double], vp),
        "g_variant_new_string": ([cp], vp),
        "g_variant_ref_sink": ([vp], vp),
        "g_variant_print": ([vp, ip], vp),
    }
    for name, (argtypes, restype) in gsigs.items():
        fn = getattr(_glib, name)
        fn.argtypes = argtypes
        fn.restype = restype


if HAVE_SRD:  # pragma: no cover - library specific
    _bind()


@dataclass
class _SessionRecord:
    handle: ctypes.c_void_p
    instances: Dict[str, int] = field(default_factory=dict)
    infos: Dict[str, DecoderInfo] = field(default_factory=dict)
    callbacks: List[Any] = field(default_factory=list)


@dataclass
class SrdContext:
    """Token for the library's process-wide state, plus the decoder search path."""

    dirs: List[str]


class SigrokDecode(DecoderLibrary):  # pragma: no cover - library specific
    """Convenience wrapper around the libsigrokdecode C API."""

    name = "libsigrokdecode"

    def __init__(self) -> None:
        if not HAVE_SRD:
            raise RuntimeError("libsigrokdecode not available")
        self._sessions: Dict[int, _SessionRecord] = {}
        self._dirs: List[str] = decoder_dirs()

    @staticmethod
    def _check(rc: int, what: str) -> None:
        if rc != SRD_OK:
            raise DecoderError(f"{what} failed (error {rc})")

    def set_verbosity(self, level: int) -> None:
        self._check(_srd.srd_log_loglevel_set(int(level)), "Setting decoder log level")

    def create_context(self) -> SrdContext:
        self._check(_srd.srd_init(None), "libsigrokdecode initialization")
        paths: List[str] = []
        node = _srd.srd_searchpaths_get()
        while node:
            item = node.contents
            if item.data:
                paths.append(ctypes.cast(item.data, ctypes.c_char_p).value.decode("utf-8"))
            node = item.next
        self._dirs = decoder_dirs(paths)
        return SrdContext(dirs=self._dirs)

    def destroy_context(self, ctx: Any) -> None:
        self._sessions.clear()
        self._check(_srd.srd_exit(), "libsigrokdecode shutdown")

    def create_session(self, ctx: Any) -> int:
        handle = ctypes.c_void_p()
        self._check(_srd.srd_session_new(ctypes.byref(handle)), "Creating decode session")
        self._sessions[handle.value] = _SessionRecord(handle=handle)
        return handle.value

    def destroy_session_subsystem(self, session: Any) -> None:
        record = self._sessions.pop(session, None)
        if record is None:
            return
        self._check(_srd.srd_session_destroy(record.handle), "Destroying decode session")

    def version(self) -> str:
        raw = _srd.srd_lib_version_string_get()
        return raw.decode("utf-8") if raw else "unknown"

    def list_decoders(self, ctx: Any) -> List[Tuple[str, str]]:
        found: Dict[str, str] = {}
        for base in ctx.dirs:
            for entry in sorted(os.listdir(base)):
                path = os.path.join(base, entry, "pd.py")
                if entry in found or not os.path.isfile(path):
                    continue
                try:
                    info = read_decoder_info(path)
                except (DecoderError, SyntaxError, OSError) as exc:
                    logger.debug("Skipping decoder %s: %s", entry, exc)
                    continue
                found[info.id] = info.longname
        return sorted(found.items())

    def decoder_info(self, ctx: Any, name: str) -> DecoderInfo:
        path = find_decoder(name, ctx.dirs)
        if path is None:
            raise DecoderError(f"Protocol decoder {name} not found")
        return read_decoder_info(path)

    def _record(self, session: Any) -> _SessionRecord:
        try:
            return self._sessions[session]
        except KeyError as exc:
            raise DecoderError("Unknown decode session") from exc

    def _table(self, values: Dict[str, Any]) -> int:
        table = _glib.g_hash_table_new_full(
            ctypes.cast(_glib.g_str_hash, ctypes.c_void_p),
            ctypes.cast(_glib.g_str_equal, ctypes.c_void_p),
            ctypes.cast(_glib.g_free, ctypes.c_void_p),
            ctypes.cast(_glib.g_variant_unref, ctypes.c_void_p),
        )
        for key, value in values.items():
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                variant = _glib.g_variant_new_string(str(value).encode("utf-8"))
            elif isinstance(value, int):
                variant = _glib.g_variant_new_int64(value)
            else:
                variant = _glib.g_variant_new_double(value)
            _glib.g_hash_table_insert(table, _glib.g_strdup(key.encode("utf-8")), _glib.g_variant_ref_sink(variant))
        return table

    def register_decoders(self, session: Any, decoders: List[DecoderSpec]) -> None:
        record = self._record(session)
        for spec in decoders:
            self._check(_srd.srd_decoder_load(spec.name.encode("utf-8")), f"Loading protocol decoder {spec.name}")
            path = find_decoder(spec.name, self._dirs)
            info = read_decoder_info(path) if path else DecoderInfo(id=spec.name)
            values = {key: option_value(info, key, text) for key, text in spec.options.items()}
            table = self._table(values)
            try:
                di = _srd.srd_inst_new(record.handle, spec.name.encode("utf-8"), table)
            finally:
                _glib.g_hash_table_unref(table)
            if not di:
                raise DecoderError(f"Failed to instantiate protocol decoder {spec.name}")
            record.instances[spec.name] = di
            record.infos[spec.name] = info

    def build_stack(self, session: Any, stack: DecoderStack) -> None:
        record = self._record(session)
        names = stack.names
        for bottom, top in zip(names, names[1:]):
            self._check(
                _srd.srd_inst_stack(record.handle, record.instances[bottom], record.instances[top]),
                f"Stacking {top} on {bottom}",
            )

    def map_channels(self, session: Any, name: str, mapping: Dict[str, int]) -> None:
        record = self._record(session)
        table = _glib.g_hash_table_new_full(
            ctypes.cast(_glib.g_str_hash, ctypes.c_void_p),
            ctypes.cast(_glib.g_str_equal, ctypes.c_void_p),
            ctypes.cast(_glib.g_free, ctypes.c_void_p),
            ctypes.cast(_glib.g_variant_unref, ctypes.c_void_p),
        )
        for key, index in mapping.items():
            variant = _glib.g_variant_ref_sink(_glib.g_variant_new_int32(int(index)))
            _glib.g_hash_table_insert(table, _glib.g_strdup(key.encode("utf-8")), variant)
        try:
            self._check(_srd.srd_inst_channel_set_all(record.instances[name], table), f"Mapping channels of {name}")
        finally:
            _glib.g_hash_table_unref(table)

    def _event(self, record: _SessionRecord, kind: str, pdata: Any) -> DecoderEvent:
        pd = pdata.contents
        decoder = pd.pdo.contents.proto_id.decode("utf-8") if pd.pdo else ""
        info = record.infos.get(decoder)
        event = DecoderEvent(decoder=decoder, start_sample=int(pd.start_sample), end_sample=int(pd.end_sample))
        if kind == "annotation" and pd.data:
            ann = ctypes.cast(pd.data, ctypes.POINTER(_SrdAnnotation)).contents
            ids = info.annotation_ids if info else []
            event.cls = ids[ann.ann_class] if 0 <= ann.ann_class < len(ids) else str(ann.ann_class)
            idx = 0
            while ann.ann_text and ann.ann_text[idx]:
                event.texts.append(ann.ann_text[idx].decode("utf-8", "replace"))
                idx += 1
        elif kind == "binary" and pd.data:
            binary = ctypes.cast(pd.data, ctypes.POINTER(_SrdBinary)).contents
            ids = info.binary_ids if info else []
            event.cls = ids[binary.bin_class] if 0 <= binary.bin_class < len(ids) else str(binary.bin_class)
            event.data = ctypes.string_at(binary.data, binary.size)
        elif kind == "meta" and pd.data:
            raw = _glib.g_variant_print(pd.data, 0)
            event.value = ctypes.cast(raw, ctypes.c_char_p).value.decode("utf-8")
            _glib.g_free(raw)
        return event

    def register_output_callback(self, session: Any, kind: str, callback: DecoderCallback) -> None:
        record = self._record(session)
        if kind not in OUTPUT_TYPES:
            raise DecoderError(f"Unknown decoder output kind {kind}")

        def trampoline(pdata: Any, _cb_data: Any) -> None:
            callback(self._event(record, kind, pdata))

        c_callback = _CALLBACK(trampoline)
        record.callbacks.append(c_callback)
        self._check(
            _srd.srd_pd_output_callback_add(record.handle, OUTPUT_TYPES[kind], c_callback, None),
            f"Registering {kind} output callback",
        )

    def start(self, session: Any, samplerate: Optional[int]) -> None:
        record = self._record(session)
        if samplerate:
            variant = _glib.g_variant_new_uint64(int(samplerate))
            self._check(
                _srd.srd_session_metadata_set(record.handle, SRD_CONF_SAMPLERATE, variant),
                "Setting decoder samplerate",
            )
        self._check(_srd.srd_session_start(record.handle), "Starting decode session")

    def send(self, session: Any, start_sample: int, data: np.ndarray, unitsize: int) -> None:
        record = self._record(session)
        buf = np.ascontiguousarray(data, dtype=np.uint8)
        count = buf.size // unitsize
        self._check(
            _srd.srd_session_send(
                record.handle,
                int(start_sample),
                int(start_sample + count),
                buf.ctypes.data_as(ctypes.POINTER(ctypes.c_uint8)),
                int(buf.size),
                int(unitsize),
            ),
            "Sending samples to decoders",
        )
