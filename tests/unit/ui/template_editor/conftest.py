"""模板编辑器测试 fixtures."""

import pytest

from certdesigner.core.design_surface import DesignSurface


@pytest.fixture
def surface(sample_document) -> DesignSurface:
    """包含四种元素的设计画布."""
    return DesignSurface(sample_document)
