import sys

from screen_streamer.main import main

sys.exit(main())
