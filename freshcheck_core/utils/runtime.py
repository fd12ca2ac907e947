# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of FreshCheck Engine.
#
# FreshCheck Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# FreshCheck Engine is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with FreshCheck Engine. If not, see <https://www.gnu.org/licenses/>.

import os
from datetime import datetime, timezone


def is_local_run() -> bool:
    """
    Best-effort detection of local/dev runs without requiring extra configuration.
    """
    env = (os.getenv("FRESHCHECK_ENV") or os.getenv("ENV") or "").strip().lower()
    return env in ("local", "dev", "development")


def utc_now() -> datetime:
    """Default clock for cache and doctrine checks."""
    return datetime.now(timezone.utc)
