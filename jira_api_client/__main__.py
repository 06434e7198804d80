import sys

from jira_api_client.cli import main

sys.exit(main())
