# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of FreshCheck Engine.
#
# FreshCheck Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
FreshCheck Core Engine
======================

Truth classification, freshness-aware external lookup and post-generation
doctrine enforcement for conversational assistants.
"""

__version__ = "0.4.0"

# Versioning for cached/verified answers. Bump when classifier patterns or
# source selection strategy change.
CLASSIFIER_VERSION = "truth_rules_v2"
SOURCE_STRATEGY_VERSION = "category_first_v1"
