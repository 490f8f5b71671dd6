import sys

from lambda_runtime.cli import main

sys.exit(main())
