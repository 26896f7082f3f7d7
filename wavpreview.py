import os
import sys
import argparse

try:
    from rich.console import Console
    from rich.table import Table
    from rich.panel import Panel
    from rich.progress import Progress, SpinnerColumn, BarColumn, TextColumn
    from rich import box
except ImportError:
    print("Error: The 'rich' library is required for the CLI but not installed.", file=sys.stderr)
    print("Please install it with: pip install wavpreview[cli]", file=sys.stderr)
    sys.exit(1)

import numpy as np

from wavpreviewlib import __version__
from wavpreviewlib.analyzer import FigureRenderer
from wavpreviewlib.config import ConfigError, build_structured_defaults, load_preset, merge_configs, validate_config
from wavpreviewlib.decoder import decode, read_audio_info, DecodeError
from wavpreviewlib.encoder import cut_to_wav, sanitize_filename
from wavpreviewlib.events import EventBus, EventType
from wavpreviewlib.host import AudioDocument, transfer_file
from wavpreviewlib.models import FrequencyScale, WindowSizeIndex
from wavpreviewlib.pipeline import PreviewSession
from wavpreviewlib.transfer import TransferError

console = Console()

_WINDOW_SIZES = [w.window_size for w in WindowSizeIndex]
_SCALES = {s.name.lower(): s for s in FrequencyScale}


def positive_int(value):
    ivalue = int(value)
    if ivalue <= 0:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return ivalue


def parse_arguments():
    parser = argparse.ArgumentParser(
        description="WavPreview: inspect an audio file's waveform and spectrogram",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument("--version", action="version",
                        version=f"wavpreview {__version__}")

    parser.add_argument("file", type=str,
                        help="Audio file to preview (.wav, .flac, .ogg, .aiff, ...)")
    parser.add_argument("--preset", type=str, default=None,
                        help="JSON preset with default settings (see the GUI config file for the layout)")

    # Transfer
    parser.add_argument("--first_chunk", type=positive_int, default=None,
                        help="Size of the first transfer chunk in bytes (default from config)")
    parser.add_argument("--chunk", type=positive_int, default=None,
                        help="Size of later transfer chunks in bytes (default from config)")

    # Analysis
    parser.add_argument("--window_size", type=int, choices=_WINDOW_SIZES, default=None,
                        help="FFT window size in samples")
    parser.add_argument("--hop_size", type=positive_int, default=None,
                        help="Hop size in samples (derived from the time range if omitted)")
    parser.add_argument("--scale", type=str, choices=list(_SCALES), default=None,
                        help="Frequency scale of the spectrogram")
    parser.add_argument("--mel_filters", type=int, default=None,
                        help="Number of mel filters (20-200)")
    parser.add_argument("--min_freq", type=float, default=None, help="Lowest frequency (Hz)")
    parser.add_argument("--max_freq", type=float, default=None, help="Highest frequency (Hz)")
    parser.add_argument("--start", type=float, default=None, help="Start of the time range (s)")
    parser.add_argument("--end", type=float, default=None, help="End of the time range (s)")
    parser.add_argument("--db_range", type=float, default=None,
                        help="Lower end of the spectrogram dB range (negative)")

    # Output
    parser.add_argument("--cut", type=str, default=None, metavar="NAME",
                        help="Write the selected time range as a 16-bit WAV next to the source file")

    if len(sys.argv) == 1:
        parser.print_help(sys.stderr)
        sys.exit(1)

    args = parser.parse_args()

    if args.db_range is not None and args.db_range >= 0.0:
        parser.error("--db_range must be < 0")

    return args


def build_config(args):
    config = build_structured_defaults()
    if args.preset:
        config = merge_configs(config, load_preset(args.preset))

    transfer = {"first_chunk_bytes": args.first_chunk, "chunk_bytes": args.chunk}
    analyze = {
        "window_size_index": (_WINDOW_SIZES.index(args.window_size)
                              if args.window_size is not None else None),
        "frequency_scale": int(_SCALES[args.scale]) if args.scale else None,
        "mel_filter_num": args.mel_filters,
        "min_frequency": args.min_freq,
        "max_frequency": args.max_freq,
        "min_time": args.start,
        "max_time": args.end,
        "spectrogram_amplitude_range": args.db_range,
    }
    cli_overrides = {
        "transfer": {k: v for k, v in transfer.items() if v is not None},
        "analyze_default": {k: v for k, v in analyze.items() if v is not None},
    }
    config = merge_configs(config, cli_overrides)
    validate_config(config)
    return config


# ---------------------------------------------------------------------------
# Rich console rendering (CLI-only, not in the library)
# ---------------------------------------------------------------------------

class SummaryRenderer(FigureRenderer):
    """Collects what a figure would show, for a text summary."""

    def __init__(self, progress=None, task_id=None):
        self.progress = progress
        self.task_id = task_id
        self.settings = None
        self.waveform_points = {}
        self.spectrogram_frames = {}
        self.spectrogram_bins = {}
        self.peak_db = {}

    def begin(self, settings, num_channels):
        self.settings = settings

    def draw_waveform(self, ch, x, y, settings):
        self.waveform_points[ch] = self.waveform_points.get(ch, 0) + len(x)
        self._advance()

    def draw_spectrogram(self, ch, frame_offset, n_frames, db, settings):
        self.spectrogram_frames[ch] = n_frames
        if db.size:
            self.spectrogram_bins[ch] = db.shape[1]
            self.peak_db[ch] = max(self.peak_db.get(ch, -np.inf), float(db.max()))
        self._advance()

    def _advance(self):
        if self.progress is not None:
            self.progress.advance(self.task_id)


def print_info(info):
    table = Table(title="File", box=box.SIMPLE_HEAVY, show_header=False)
    table.add_column("Property", style="bold")
    table.add_column("Value")
    for name, value in info.rows():
        table.add_row(name, value)
    console.print(table)


def print_analysis(renderer, num_channels):
    s = renderer.settings
    console.print(Panel.fit(
        f"Time: [cyan]{s.min_time:.3f}s - {s.max_time:.3f}s[/]\n"
        f"Frequency: [cyan]{s.min_frequency:g} - {s.max_frequency:g} Hz[/] "
        f"({s.frequency_scale.name.lower()})\n"
        f"Window: [cyan]{s.window_size}[/] | Hop: [cyan]{s.hop_size}[/]"
        f"{' (auto)' if s.auto_hop_size else ''}\n"
        f"dB range: [cyan]{s.spectrogram_amplitude_range:g} dB[/]",
        title=f"Analysis #{s.analyze_id}"
    ))

    table = Table(title="Channels", box=box.SIMPLE_HEAVY)
    table.add_column("Channel", justify="right")
    table.add_column("Waveform points", justify="right")
    table.add_column("Frames", justify="right")
    table.add_column("Bins", justify="right")
    table.add_column("Peak power", justify="right")
    for ch in range(num_channels):
        peak = renderer.peak_db.get(ch)
        table.add_row(
            str(ch + 1),
            str(renderer.waveform_points.get(ch, 0)),
            str(renderer.spectrogram_frames.get(ch, 0)),
            str(renderer.spectrogram_bins.get(ch, 0)),
            f"{peak:.1f} dB" if peak is not None else "[dim]-[/]",
        )
    console.print(table)


def preview_file():
    args = parse_arguments()

    if not os.path.isfile(args.file):
        console.print(f"[bold red]Error:[/] File '{args.file}' not found.")
        return 1

    try:
        config = build_config(args)
    except ConfigError as e:
        console.print(f"[bold red]Error:[/] {e}")
        return 1

    document = AudioDocument(args.file)
    transfer = config["transfer"]

    # --- TRANSFER ---
    event_bus = EventBus()
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total} bytes"),
        console=console,
    ) as progress:
        task_id = progress.add_task(f"[cyan]Reading {document.filename}...",
                                    total=document.size())

        def on_progress(received, total):
            progress.update(task_id, completed=received, total=total)
        event_bus.subscribe(EventType.TRANSFER_PROGRESS, on_progress)

        try:
            data = transfer_file(
                document,
                first_chunk_bytes=transfer["first_chunk_bytes"],
                chunk_bytes=transfer["chunk_bytes"],
                client_events=event_bus,
            )
        except (TransferError, OSError) as e:
            console.print(f"[bold red]Error:[/] {e}")
            return 1

    # --- DECODE ---
    result = decode(data)
    if not result.status.ok:
        console.print(f"[bold red]Error:[/] failed to decode audio: {result.status.error}")
        return 1
    try:
        info = read_audio_info(data)
    except DecodeError as e:
        console.print(f"[bold red]Error:[/] {e}")
        return 1
    print_info(info)

    # --- ANALYZE ---
    session = PreviewSession(result.to_sample_buffer(), info, config)
    if args.hop_size is not None:
        session.analyze_settings.hop_size = args.hop_size

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task_id = progress.add_task("[cyan]Analyzing...", total=None)
        renderer = SummaryRenderer(progress, task_id)
        analyzer = session.attach_analyzer(renderer)
        session.analyze()
        analyzer.queue.run_pending()

    print_analysis(renderer, session.sample_buffer.num_channels)

    # --- CUT ---
    if args.cut is not None:
        s = session.analyze_settings
        try:
            out = document.write_sibling(
                sanitize_filename(args.cut),
                cut_to_wav(session.sample_buffer, s.min_time, s.max_time),
            )
        except (OSError, ValueError) as e:
            console.print(f"[bold red]Error:[/] cut failed: {e}")
            return 1
        console.print(f"\n[dim]Cut saved to: {out}[/]")

    session.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(preview_file())
