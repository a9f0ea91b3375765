import sys

from mesh_volume.main import main

sys.exit(main())
