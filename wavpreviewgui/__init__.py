"""WavPreview GUI: PySide6 front-end for previewing audio files."""


def main():
    from .mainwindow import main as _main
    _main()


__all__ = ["main"]
