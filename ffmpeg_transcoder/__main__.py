import sys

from ffmpeg_transcoder.cli import main

sys.exit(main())
