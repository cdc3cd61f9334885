import sys
import os

# Add project root to sys.path so tests can import top-level packages like 'correlate', 'policy', 'reconcile', etc.
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

# the in-memory collaborators in tests/fakes.py
HERE = os.path.dirname(os.path.abspath(__file__))
if HERE not in sys.path:
    sys.path.insert(0, HERE)
