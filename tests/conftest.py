pytest_plugins = ["reporadar.testing.conftest"]
