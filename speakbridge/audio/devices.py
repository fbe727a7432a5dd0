from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from speakbridge.app.diagnostic_log import DiagnosticLog, LogCategory
from speakbridge.errors import DeviceError

INPUT_KIND = "audioinput"
OUTPUT_KIND = "audiooutput"


@dataclass(frozen=True)
class AudioDevice:
    id: str
    label: str
    kind: str


@dataclass(frozen=True)
class AudioDevices:
    inputs: List[AudioDevice] = field(default_factory=list)
    outputs: List[AudioDevice] = field(default_factory=list)


def _query_devices() -> List[dict[str, Any]]:
    try:
        import sounddevice as sd
    except ImportError as e:
        raise DeviceError(
            "sounddevice is not installed. Install with: python -m pip install sounddevice"
        ) from e

    try:
        # Fails when no microphone is present or access is denied.
        sd.check_input_settings()
        return [dict(d) for d in sd.query_devices()]
    except Exception as e:
        raise DeviceError(f"Unable to access audio devices: {e}") from e


def split_devices(raw: Sequence[dict[str, Any]]) -> AudioDevices:
    inputs: List[AudioDevice] = []
    outputs: List[AudioDevice] = []
    for d in raw:
        name = str(d.get("name") or "").strip()
        if not name:
            continue
        # The device name is what both sounddevice and the speech SDK accept.
        if int(d.get("max_input_channels", 0)) > 0:
            inputs.append(AudioDevice(id=name, label=name, kind=INPUT_KIND))
        if int(d.get("max_output_channels", 0)) > 0:
            outputs.append(AudioDevice(id=name, label=name, kind=OUTPUT_KIND))
    return AudioDevices(inputs=inputs, outputs=outputs)


def enumerate_audio_devices(
    *,
    logger: logging.Logger | None = None,
    log: DiagnosticLog | None = None,
) -> AudioDevices:
    """List input/output devices. Failures are logged and yield empty lists."""
    try:
        devices = split_devices(_query_devices())
    except DeviceError as e:
        if logger is not None:
            logger.warning("device_enumeration_failed", extra={"detail": str(e)})
        if log is not None:
            log.append(LogCategory.ERROR, f"Error enumerating devices: {e}")
        return AudioDevices()

    if logger is not None:
        logger.info(
            "devices_enumerated",
            extra={"inputs": len(devices.inputs), "outputs": len(devices.outputs)},
        )
    return devices


def default_device_id(devices: Sequence[AudioDevice]) -> Optional[str]:
    return devices[0].id if devices else None


def format_device_list(devices: AudioDevices) -> str:
    lines = ["Input devices:"]
    lines.extend(f"  {d.label}" for d in devices.inputs)
    if not devices.inputs:
        lines.append("  (none)")
    lines.append("Output devices:")
    lines.extend(f"  {d.label}" for d in devices.outputs)
    if not devices.outputs:
        lines.append("  (none)")
    return "\n".join(lines)
