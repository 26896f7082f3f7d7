from ._version import __version__
from .models import (
    FrequencyScale,
    WindowSizeIndex,
    SampleBuffer,
    AnalyzeSettingsSnapshot,
    AudioInfo,
)
from .analysis import (
    AnalyzeService,
    hann_window,
    hz_to_mel,
    mel_to_hz,
    mel_filter_bank,
    round_to_nice_number,
    spectrogram_color,
    color_lut,
)
from .analyzer import Analyzer, AnalysisJob, AnalysisResult, FigureRenderer
from .settings import AnalyzeSettingsService, PlayerSettingsService
from .transfer import (
    RequestBytes,
    BytesReply,
    FileChanged,
    TransferSession,
    TransferClient,
    TransferError,
    TransferTimeoutError,
    TransferProtocolError,
)
from .host import AudioDocument, transfer_file
from .decoder import decode, read_audio_info, DecodeError, DecodeResult, DecodeStatus
from .encoder import cut_to_wav, encode_wav, sanitize_filename
from .player import PlayerService
from .pipeline import PreviewPipeline, PreviewSession
from .scheduler import TaskQueue
from .config import (
    build_structured_defaults,
    merge_configs,
    validate_config,
    validate_param_values,
    validate_structured_config,
    load_preset,
    save_preset,
    ConfigError,
    ConfigFieldError,
    ParamSpec,
)
from .events import EventBus, EventType, Subscription

__all__ = [
    "__version__",
    "FrequencyScale",
    "WindowSizeIndex",
    "SampleBuffer",
    "AnalyzeSettingsSnapshot",
    "AudioInfo",
    "AnalyzeService",
    "hann_window",
    "hz_to_mel",
    "mel_to_hz",
    "mel_filter_bank",
    "round_to_nice_number",
    "spectrogram_color",
    "color_lut",
    "Analyzer",
    "AnalysisJob",
    "AnalysisResult",
    "FigureRenderer",
    "AnalyzeSettingsService",
    "PlayerSettingsService",
    "RequestBytes",
    "BytesReply",
    "FileChanged",
    "TransferSession",
    "TransferClient",
    "TransferError",
    "TransferTimeoutError",
    "TransferProtocolError",
    "AudioDocument",
    "transfer_file",
    "decode",
    "read_audio_info",
    "DecodeError",
    "DecodeResult",
    "DecodeStatus",
    "cut_to_wav",
    "encode_wav",
    "sanitize_filename",
    "PlayerService",
    "PreviewPipeline",
    "PreviewSession",
    "TaskQueue",
    "build_structured_defaults",
    "merge_configs",
    "validate_config",
    "validate_param_values",
    "validate_structured_config",
    "load_preset",
    "save_preset",
    "ConfigError",
    "ConfigFieldError",
    "ParamSpec",
    "EventBus",
    "EventType",
    "Subscription",
]
