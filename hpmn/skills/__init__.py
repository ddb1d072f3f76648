"""Actions: default registry entries, selection and webhook execution."""
