"""Run the helm-api command line tool."""

from helm_api.tool.helm_api import main

if __name__ == "__main__":
    main()
