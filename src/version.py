"""Version information for NeoMiMa."""

# Semantic versioning (MAJOR.MINOR.PATCH)
__version__ = "0.3.0"

# Release status: 'alpha', 'beta', 'rc', or 'final'
__release_status__ = "beta"

# Build date in YYYYMMDD format
__build_date__ = "20261017"

# Build number for multiple releases on same day
__build_number__ = 1

__build__ = f"{__build_date__}.{__build_number__}"

version_info = f"{__version__}"
if __release_status__ != "final":
    version_info += f"-{__release_status__}"

# Full version string including build metadata
version_string = f"{version_info} (build {__build__})"

# Shown in the window title and About dialog
display_version = version_info
