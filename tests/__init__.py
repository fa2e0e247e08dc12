# Registrar test suite
#
# Run with: pytest
