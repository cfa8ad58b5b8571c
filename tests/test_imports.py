"""
Smoke tests to verify all modules can be imported.
"""

def test_import_editor_host():
    import editor_host
    assert hasattr(editor_host, '__version__')


def test_import_sandbox():
    import sandbox
    assert hasattr(sandbox, '__version__')


def test_import_bridge():
    import bridge
    assert hasattr(bridge, '__version__')
