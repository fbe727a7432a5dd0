from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from speakbridge.app.diagnostic_log import LogEntry
from speakbridge.audio.devices import AudioDevice
from speakbridge.audio.resource import AudioResource
from speakbridge.contracts import LanguageOption, Voice

try:
    from PyQt6 import QtCore, QtWidgets

    _PYQT_IMPORT_ERROR: ModuleNotFoundError | None = None
except ModuleNotFoundError as e:  # pragma: no cover - import guard path
    QtCore = None  # type: ignore[assignment]
    QtWidgets = None  # type: ignore[assignment]
    _PYQT_IMPORT_ERROR = e


def format_log_timestamp(iso_ts: str) -> str:
    """24h local HH:MM:SS for an ISO-8601 timestamp."""
    try:
        parsed = datetime.fromisoformat(iso_ts)
    except ValueError:
        return iso_ts
    return parsed.astimezone().strftime("%H:%M:%S")


def format_log_entry(entry: LogEntry) -> str:
    return f"{format_log_timestamp(entry.timestamp)}  {entry.category.value.upper():<11}  {entry.message}"


def logs_header_text(count: int) -> str:
    return f"Event Logs ({int(count)})"


def status_message(listening: bool, source_name: str, target_name: str) -> str:
    if listening:
        return f"Listening in {source_name} and translating to {target_name}..."
    return "Click Start to begin translation"


def voice_label(voice: Voice) -> str:
    return f"{voice.name} - {voice.gender}"


if QtWidgets is not None:
    class MainWindow(QtWidgets.QMainWindow):
        start_requested = QtCore.pyqtSignal()
        stop_requested = QtCore.pyqtSignal()
        clear_logs_requested = QtCore.pyqtSignal()
        save_audio_requested = QtCore.pyqtSignal()
        logs_toggled = QtCore.pyqtSignal(bool)
        countdown_changed = QtCore.pyqtSignal(int)
        source_language_changed = QtCore.pyqtSignal(str)
        target_language_changed = QtCore.pyqtSignal(str)
        voice_changed = QtCore.pyqtSignal(str)
        input_device_changed = QtCore.pyqtSignal(str)
        output_device_changed = QtCore.pyqtSignal(str)

        def __init__(self) -> None:
            super().__init__()
            self.setWindowTitle("SpeakBridge")
            self.resize(820, 720)
            self._listening = False
            self._logs_expanded = False
            self._capacity = 100

            root = QtWidgets.QWidget(self)
            self.setCentralWidget(root)
            lay = QtWidgets.QVBoxLayout(root)
            lay.setContentsMargins(22, 20, 22, 20)
            lay.setSpacing(14)

            title = QtWidgets.QLabel("SpeakBridge", root)
            title.setObjectName("title")
            lay.addWidget(title)

            status_card = QtWidgets.QFrame(root)
            status_card.setObjectName("card")
            status_lay = QtWidgets.QVBoxLayout(status_card)
            status_lay.setContentsMargins(14, 12, 14, 12)
            self.status_title = QtWidgets.QLabel("Ready", status_card)
            self.status_title.setObjectName("subhead")
            self.status_label = QtWidgets.QLabel(status_message(False, "", ""), status_card)
            self.status_label.setObjectName("status")
            self.status_label.setWordWrap(True)
            self.countdown_label = QtWidgets.QLabel("", status_card)
            self.countdown_label.setObjectName("countdown")
            btn_row = QtWidgets.QHBoxLayout()
            self.btn_run = QtWidgets.QPushButton("Start Translation", status_card)
            self.btn_run.setObjectName("primary")
            btn_row.addWidget(self.btn_run)
            btn_row.addStretch(1)
            status_lay.addWidget(self.status_title)
            status_lay.addWidget(self.status_label)
            status_lay.addWidget(self.countdown_label)
            status_lay.addLayout(btn_row)
            lay.addWidget(status_card)

            settings_card = QtWidgets.QFrame(root)
            settings_card.setObjectName("card")
            form = QtWidgets.QFormLayout(settings_card)
            form.setContentsMargins(14, 12, 14, 12)
            self.source_combo = QtWidgets.QComboBox(settings_card)
            self.target_combo = QtWidgets.QComboBox(settings_card)
            self.voice_combo = QtWidgets.QComboBox(settings_card)
            self.input_combo = QtWidgets.QComboBox(settings_card)
            self.output_combo = QtWidgets.QComboBox(settings_card)
            self.countdown_spin = QtWidgets.QSpinBox(settings_card)
            self.countdown_spin.setRange(0, 60)
            self.countdown_spin.setSuffix(" s")
            form.addRow("Source Language", self.source_combo)
            form.addRow("Target Language", self.target_combo)
            form.addRow("Neural Voice", self.voice_combo)
            form.addRow("Microphone", self.input_combo)
            form.addRow("Speaker", self.output_combo)
            form.addRow("Countdown", self.countdown_spin)
            lay.addWidget(settings_card)

            self.transcript_view = QtWidgets.QPlainTextEdit(root)
            self.transcript_view.setReadOnly(True)
            self.transcript_view.setMaximumHeight(80)
            self.translation_view = QtWidgets.QPlainTextEdit(root)
            self.translation_view.setReadOnly(True)
            self.translation_view.setMaximumHeight(80)
            lay.addWidget(QtWidgets.QLabel("Detected Speech", root))
            lay.addWidget(self.transcript_view)
            lay.addWidget(QtWidgets.QLabel("Translation", root))
            lay.addWidget(self.translation_view)

            audio_row = QtWidgets.QHBoxLayout()
            self.audio_label = QtWidgets.QLabel("No translation audio yet", root)
            self.btn_save_audio = QtWidgets.QPushButton("Save Audio", root)
            self.btn_save_audio.setEnabled(False)
            audio_row.addWidget(self.audio_label)
            audio_row.addStretch(1)
            audio_row.addWidget(self.btn_save_audio)
            lay.addLayout(audio_row)

            self.error_label = QtWidgets.QLabel("", root)
            self.error_label.setObjectName("error")
            self.error_label.setWordWrap(True)
            self.error_label.hide()
            lay.addWidget(self.error_label)

            logs_header = QtWidgets.QHBoxLayout()
            self.btn_logs_toggle = QtWidgets.QPushButton(logs_header_text(0), root)
            self.btn_logs_toggle.setObjectName("flat")
            self.btn_clear_logs = QtWidgets.QPushButton("Clear", root)
            self.btn_clear_logs.hide()
            logs_header.addWidget(self.btn_logs_toggle)
            logs_header.addStretch(1)
            logs_header.addWidget(self.btn_clear_logs)
            lay.addLayout(logs_header)
            self.logs_list = QtWidgets.QListWidget(root)
            self.logs_list.hide()
            lay.addWidget(self.logs_list, 1)

            self.btn_run.clicked.connect(self._on_run_clicked)
            self.btn_clear_logs.clicked.connect(self.clear_logs_requested.emit)
            self.btn_logs_toggle.clicked.connect(lambda: self._set_logs_expanded(not self._logs_expanded, emit=True))
            self.btn_save_audio.clicked.connect(self.save_audio_requested.emit)
            self.countdown_spin.valueChanged.connect(self.countdown_changed.emit)
            self.source_combo.currentIndexChanged.connect(
                lambda _i: self.source_language_changed.emit(str(self.source_combo.currentData() or ""))
            )
            self.target_combo.currentIndexChanged.connect(
                lambda _i: self.target_language_changed.emit(str(self.target_combo.currentData() or ""))
            )
            self.voice_combo.currentIndexChanged.connect(
                lambda _i: self.voice_changed.emit(str(self.voice_combo.currentData() or ""))
            )
            self.input_combo.currentIndexChanged.connect(
                lambda _i: self.input_device_changed.emit(str(self.input_combo.currentData() or ""))
            )
            self.output_combo.currentIndexChanged.connect(
                lambda _i: self.output_device_changed.emit(str(self.output_combo.currentData() or ""))
            )

            self.setStyleSheet(
                """
                QMainWindow { background: #121416; color: #e8ecef; }
                QLabel { color: #d7dde2; }
                QLabel#title { font-size: 30px; font-weight: 700; letter-spacing: 0.3px; }
                QLabel#status { color: #a7b0b8; font-size: 13px; }
                QLabel#subhead { color: #b8c1c8; font-size: 15px; font-weight: 600; }
                QLabel#countdown { color: #c8f25f; font-size: 22px; font-weight: 700; }
                QLabel#error { color: #ff7b72; font-weight: 600; }
                QFrame#card {
                    background: #1a1e22;
                    border: 1px solid #2a3138;
                    border-radius: 14px;
                }
                QPushButton {
                    background: #22272d;
                    border: 1px solid #313840;
                    border-radius: 10px;
                    color: #e7edf3;
                    padding: 8px 14px;
                    font-size: 13px;
                    font-weight: 600;
                }
                QPushButton:hover { background: #2a3037; }
                QPushButton#primary {
                    background: #c8f25f;
                    color: #172005;
                    border-color: #c8f25f;
                }
                QPushButton#primary:hover { background: #d3f67f; border-color: #d3f67f; }
                QPushButton#flat { background: transparent; border: none; text-align: left; }
                QPlainTextEdit, QListWidget {
                    background: #13181d;
                    border: 1px solid #2f3740;
                    border-radius: 8px;
                    color: #e8ecef;
                }
                """
            )

        def _on_run_clicked(self) -> None:
            if self._listening or self.countdown_label.text():
                self.stop_requested.emit()
            else:
                self.start_requested.emit()

        def _set_logs_expanded(self, expanded: bool, *, emit: bool) -> None:
            self._logs_expanded = bool(expanded)
            self.logs_list.setVisible(self._logs_expanded)
            if emit:
                self.logs_toggled.emit(self._logs_expanded)

        def set_logs_expanded(self, expanded: bool) -> None:
            self._set_logs_expanded(expanded, emit=False)

        def set_countdown_seconds(self, seconds: int) -> None:
            self.countdown_spin.blockSignals(True)
            self.countdown_spin.setValue(max(0, int(seconds)))
            self.countdown_spin.blockSignals(False)

        def set_language_options(self, options: Sequence[LanguageOption], source: str, target: str) -> None:
            for combo, selected in ((self.source_combo, source), (self.target_combo, target)):
                combo.blockSignals(True)
                combo.clear()
                for opt in options:
                    combo.addItem(opt.label, opt.code)
                idx = combo.findData(selected)
                combo.setCurrentIndex(max(0, idx))
                combo.blockSignals(False)

        def set_voices(self, voices: Sequence[Voice], selected: str) -> None:
            self.voice_combo.blockSignals(True)
            self.voice_combo.clear()
            if not voices:
                self.voice_combo.addItem("No voices available", "")
            for v in voices:
                self.voice_combo.addItem(voice_label(v), v.short_name)
            idx = self.voice_combo.findData(selected)
            self.voice_combo.setCurrentIndex(max(0, idx))
            self.voice_combo.blockSignals(False)
            self.voice_combo.setEnabled(bool(voices) and not self._listening)

        def set_devices(
            self,
            inputs: Sequence[AudioDevice],
            outputs: Sequence[AudioDevice],
            selected_input: Optional[str],
            selected_output: Optional[str],
        ) -> None:
            pairs = ((self.input_combo, inputs, selected_input), (self.output_combo, outputs, selected_output))
            for combo, devices, selected in pairs:
                combo.blockSignals(True)
                combo.clear()
                if not devices:
                    combo.addItem("System default", "")
                for d in devices:
                    combo.addItem(d.label, d.id)
                idx = combo.findData(selected or "")
                combo.setCurrentIndex(max(0, idx))
                combo.blockSignals(False)

        def set_listening(self, listening: bool, source_name: str, target_name: str) -> None:
            self._listening = bool(listening)
            self.status_title.setText("Listening" if listening else "Ready")
            self.status_label.setText(status_message(listening, source_name, target_name))
            self.btn_run.setText("Stop Translation" if listening else "Start Translation")
            for widget in (
                self.source_combo,
                self.target_combo,
                self.input_combo,
                self.output_combo,
                self.countdown_spin,
            ):
                widget.setEnabled(not listening)
            self.voice_combo.setEnabled(not listening and bool(self.voice_combo.currentData()))

        def set_countdown(self, remaining: Optional[int]) -> None:
            self.countdown_label.setText("" if not remaining else f"Starting in {int(remaining)}...")
            if remaining:
                self.btn_run.setText("Cancel")
            elif not self._listening:
                self.btn_run.setText("Start Translation")

        def set_transcript(self, text: str) -> None:
            self.transcript_view.setPlainText(text or "")

        def set_translation(self, text: str) -> None:
            self.translation_view.setPlainText(text or "")

        def set_error(self, text: str) -> None:
            self.error_label.setText(f"Error: {text}" if text else "")
            self.error_label.setVisible(bool(text))

        def set_latest_audio(self, resource: Optional[AudioResource]) -> None:
            if resource is None:
                self.audio_label.setText("No translation audio yet")
                self.btn_save_audio.setEnabled(False)
                return
            self.audio_label.setText(f"Latest translation audio ({len(resource.data) // 1024} KB)")
            self.btn_save_audio.setEnabled(True)

        def add_log_entry(self, entry: LogEntry) -> None:
            self.logs_list.insertItem(0, format_log_entry(entry))
            while self.logs_list.count() > self._capacity:
                self.logs_list.takeItem(self.logs_list.count() - 1)
            self._refresh_logs_header()

        def clear_log_entries(self) -> None:
            self.logs_list.clear()
            self._refresh_logs_header()

        def set_log_capacity(self, capacity: int) -> None:
            self._capacity = max(1, int(capacity))

        def _refresh_logs_header(self) -> None:
            count = self.logs_list.count()
            self.btn_logs_toggle.setText(logs_header_text(count))
            self.btn_clear_logs.setVisible(count > 0)

        def choose_save_path(self) -> str:
            path, _ = QtWidgets.QFileDialog.getSaveFileName(
                self,
                "Save translation audio",
                "translation.wav",
                "WAV audio (*.wav)",
            )
            return path
else:
    class MainWindow:
        def __init__(self) -> None:
            raise ModuleNotFoundError(
                "PyQt6 is required for MainWindow. Install with: python -m pip install PyQt6"
            ) from _PYQT_IMPORT_ERROR
