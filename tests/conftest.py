"""
LogTrace - Shared Test Fixtures
"""

import pytest


USER_SERVICE_JAVA = """\
package com.example;

public class UserService {
    public User getUser(int id) {
        return repository.find(id);
    }
}
"""

USER_CONTROLLER_JAVA = """\
package com.example;

public class UserController {
    public User show(int id) {
        User user = userService.getUser(id);
        return user;
    }
}
"""

WORKER_PY = """\
class Worker:
    def run(self, item):
        return process(item)


def process(item):
    raise ValueError(item)
"""


@pytest.fixture
def project(tmp_path):
    """A small Maven/Python project with noise directories."""
    root = tmp_path / "project"
    java_dir = root / "src" / "main" / "java" / "com" / "example"
    java_dir.mkdir(parents=True)
    (root / "pom.xml").write_text("<project/>")
    (java_dir / "UserService.java").write_text(USER_SERVICE_JAVA)
    (java_dir / "UserController.java").write_text(USER_CONTROLLER_JAVA)

    (root / "app").mkdir()
    (root / "app" / "worker.py").write_text(WORKER_PY)
    (root / "README.md").write_text("# project")

    (root / "node_modules" / "lib").mkdir(parents=True)
    (root / "node_modules" / "lib" / "index.js").write_text("function getUser() {}")
    (root / "target" / "classes").mkdir(parents=True)
    (root / "target" / "classes" / "UserService.java").write_text(USER_SERVICE_JAVA)
    (root / "logs").mkdir()
    return root
