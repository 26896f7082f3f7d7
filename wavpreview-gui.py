"""
WavPreview GUI: waveform, spectrogram and playback for one audio file.

Usage:
    python wavpreview-gui.py [FILE]

Requires: PySide6 and sounddevice (install via `pip install .[gui]`)
"""

from wavpreviewgui import main

if __name__ == "__main__":
    main()
