from __future__ import annotations

import pytest

from ._gate import require_arch_checks_enabled
from ._utils import iter_python_files, matches_prefix, package_root, parse_imports

# layer -> packages it must never import
FORBIDDEN = {
    "core": ("gwops.platform", "gwops.output", "gwops.release", "gwops.services", "gwops.cli"),
    "platform": ("gwops.output", "gwops.release", "gwops.services", "gwops.cli"),
    "release": ("gwops.services", "gwops.cli"),
    "services": ("gwops.cli",),
}


@pytest.mark.parametrize("layer", sorted(FORBIDDEN))
def test_layer_does_not_import_upward(layer: str) -> None:
    require_arch_checks_enabled()

    root = package_root()
    offenders: list[str] = []
    for file_path in iter_python_files(root / layer):
        rel = file_path.relative_to(root)
        for item in parse_imports(file_path):
            if any(matches_prefix(item.module, p) for p in FORBIDDEN[layer]):
                offenders.append(f"{rel}:{item.line}: forbidden import '{item.module}'")

    assert not offenders, f"{layer} layering violations:\n" + "\n".join(offenders)
