"""hivewatch - Hive player stats tracker."""

from hivewatch.config import VERSION

__version__ = VERSION
