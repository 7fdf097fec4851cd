from pathlib import Path
import importlib
import sys
import traceback

root = Path(__file__).resolve().parents[1]
if str(root) not in sys.path:
    sys.path.insert(0, str(root))

MODULES = [
    'impactreport.core.gradients',
    'impactreport.core.models',
    'impactreport.core.store',
    'impactreport.core.binding',
    'impactreport.core.debounce',
    'impactreport.core.storage',
    'impactreport.core.remote',
    'impactreport.core.session',
    'impactreport.core.generator',
    'impactreport.config',
    'impactreport.ui.widgets',
    'impactreport.ui.main_window',
    'impactreport.main',
]


def try_import(name):
    print(f"Testing import: {name}")
    try:
        importlib.import_module(name)
        print(f"{name} OK")
        return True
    except Exception:
        print(f"{name} ERR")
        traceback.print_exc()
        return False


if __name__ == '__main__':
    failed = [name for name in MODULES if not try_import(name)]
    raise SystemExit(1 if failed else 0)
