import sys
from pathlib import Path

# Add src/ to sys.path so the package imports without installation
_src_dir = str(Path(__file__).resolve().parent.parent / "src")
if _src_dir not in sys.path:
    sys.path.insert(0, _src_dir)
