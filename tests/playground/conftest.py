import pytest
import trimesh

SESSION_URDF = """<?xml version="1.0"?>
<robot name="mini_humanoid">
  <link name="torso">
    <visual><geometry><mesh filename="package://mini/meshes/torso.stl"/></geometry></visual>
  </link>
  <link name="neck"/>
  <link name="head"/>
  <joint name="HEAD_JOINT0" type="revolute">
    <parent link="torso"/>
    <child link="neck"/>
    <limit lower="-1.57" upper="1.57"/>
  </joint>
  <joint name="HEAD_JOINT1" type="revolute">
    <parent link="neck"/>
    <child link="head"/>
    <limit lower="-1.57" upper="1.57"/>
  </joint>
</robot>
"""


@pytest.fixture
def urdf_text():
    return SESSION_URDF


@pytest.fixture
def torso_stl():
    return trimesh.creation.box(extents=(0.3, 0.2, 1.2)).export(file_type="stl")


@pytest.fixture
def nose_frame():
    def make(x, y):
        return {"pose": [{"x": x, "y": y}]}
    return make


def _hexapod_urdf():
    joints = []
    for side in ("r", "l"):
        for leg in (1, 2, 3):
            joints.append(f"""
  <link name="coxa_{side}{leg}"/>
  <link name="femur_{side}{leg}"/>
  <joint name="coxa_joint_{side}{leg}" type="revolute">
    <parent link="base_link"/>
    <child link="coxa_{side}{leg}"/>
    <limit lower="-1.0" upper="1.0"/>
  </joint>
  <joint name="femur_joint_{side}{leg}" type="revolute">
    <parent link="coxa_{side}{leg}"/>
    <child link="femur_{side}{leg}"/>
    <limit lower="-1.0" upper="1.0"/>
  </joint>""")
    return f"""<?xml version="1.0"?>
<robot name="hexapod">
  <link name="base_link"/>{''.join(joints)}
</robot>
"""


@pytest.fixture
def hexapod_urdf():
    return _hexapod_urdf()
