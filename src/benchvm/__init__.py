import warnings

# Suppress Google SDK FutureWarning messages about interpreter deprecation.
# They clutter the interactive prompts.
warnings.filterwarnings("ignore", category=FutureWarning, module="google.api_core")
warnings.filterwarnings("ignore", category=FutureWarning, module="google.cloud")
