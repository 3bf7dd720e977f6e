"""
Version information for the Reference Trait Analysis pipeline.
"""

# Main project version
__version__ = "1.0.0"

# Component versions
CCA_MODEL_VERSION = "1.0.0"      # Fit / project / external correlation
PREPROCESSING_VERSION = "1.0.0"  # Trait transforms and sex-covariate removal

# Version history
VERSION_HISTORY = {
    "1.0.0": {
        "date": "2026-10-19",
        "description": "Initial release",
        "changes": [
            "QR/SVD canonical correlation with fit-time centering",
            "Seeded Training/Test cohort split",
            "sqrt/log trait transforms and sex residualisation",
            "External feature correlation with FDR",
            "Validation report and diagnostic figures"
        ]
    }
}


def get_version_info() -> str:
    """
    Get formatted version information string.

    Returns:
        Formatted string with version and component information
    """
    info = [
        f"Reference Trait Analysis v{__version__}",
        "",
        "Component Versions:",
        f"  - CCA Model: v{CCA_MODEL_VERSION}",
        f"  - Preprocessing: v{PREPROCESSING_VERSION}",
    ]
    return "\n".join(info)


if __name__ == "__main__":
    print(get_version_info())
