import sys

from hass_shooter.main import cli


sys.exit(cli())
