"""
apkset: Device-targeting resolution for Android APK Sets.

Given the table of contents of an APK Set and the profile of a device, selects
the variant, modules and configuration splits that device must receive, and
extracts or installs them.
"""

__version__ = "1.0.0"
__author__ = "apkset Team"
