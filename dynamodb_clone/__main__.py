import sys

from dynamodb_clone.cli import main

sys.exit(main())
