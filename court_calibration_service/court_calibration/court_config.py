# court_config.py
#
# World coordinates are in meters on the court plane (Z = 0).
# Origin is the near-left corner of the doubles court, X runs across the
# court (width) and Y runs along it (length), away from the camera.

BADMINTON_COURT_LENGTH = 13.4          # meters (y)
BADMINTON_COURT_WIDTH = 6.1            # meters (x), doubles
BADMINTON_SINGLES_WIDTH = 5.18         # meters
BADMINTON_NET_HEIGHT = 1.55            # meters at the posts
BADMINTON_SHORT_SERVICE_OFFSET = 1.98  # meters from the net
BADMINTON_LONG_SERVICE_OFFSET = 0.76   # doubles long service line, inside the back boundary

TENNIS_COURT_LENGTH = 23.77
TENNIS_COURT_WIDTH = 10.97
TENNIS_SINGLES_WIDTH = 8.23
TENNIS_NET_HEIGHT = 0.914              # at the centre strap
TENNIS_SERVICE_OFFSET = 6.40


def _court_vertices(length, width, singles_width, service_offset, long_service_offset=None):
    net_y = length / 2.0
    cx = width / 2.0
    alley = (width - singles_width) / 2.0
    near_service_y = net_y - service_offset
    far_service_y = net_y + service_offset

    vertices = {
        # Outer (doubles) corners
        "corner_near_left": (0.0, 0.0),
        "corner_near_right": (width, 0.0),
        "corner_far_right": (width, length),
        "corner_far_left": (0.0, length),

        # Net posts, projected to the ground
        "net_left": (0.0, net_y),
        "net_right": (width, net_y),
        "net_center": (cx, net_y),

        # Centre line meets the baselines
        "center_near_baseline": (cx, 0.0),
        "center_far_baseline": (cx, length),

        # Singles sidelines meet the baselines
        "singles_near_left": (alley, 0.0),
        "singles_near_right": (width - alley, 0.0),
        "singles_far_left": (alley, length),
        "singles_far_right": (width - alley, length),

        # Service line centres (the "T")
        "short_service_near_center": (cx, near_service_y),
        "short_service_far_center": (cx, far_service_y),
    }

    if long_service_offset is None:
        # Tennis service lines stop at the singles sidelines
        vertices.update({
            "short_service_near_left": (alley, near_service_y),
            "short_service_near_right": (width - alley, near_service_y),
            "short_service_far_left": (alley, far_service_y),
            "short_service_far_right": (width - alley, far_service_y),
        })
    else:
        vertices.update({
            "short_service_near_left": (0.0, near_service_y),
            "short_service_near_right": (width, near_service_y),
            "short_service_far_left": (0.0, far_service_y),
            "short_service_far_right": (width, far_service_y),
            "long_service_near_left": (0.0, long_service_offset),
            "long_service_near_right": (width, long_service_offset),
            "long_service_far_left": (0.0, length - long_service_offset),
            "long_service_far_right": (width, length - long_service_offset),
        })

    return vertices


BADMINTON_COURT_VERTICES = _court_vertices(
    BADMINTON_COURT_LENGTH,
    BADMINTON_COURT_WIDTH,
    BADMINTON_SINGLES_WIDTH,
    BADMINTON_SHORT_SERVICE_OFFSET,
    BADMINTON_LONG_SERVICE_OFFSET,
)

TENNIS_COURT_VERTICES = _court_vertices(
    TENNIS_COURT_LENGTH,
    TENNIS_COURT_WIDTH,
    TENNIS_SINGLES_WIDTH,
    TENNIS_SERVICE_OFFSET,
)

COURT_VERTICES = {
    "badminton": BADMINTON_COURT_VERTICES,
    "tennis": TENNIS_COURT_VERTICES,
}

COURT_DIMENSIONS = {
    "badminton": {
        "length": BADMINTON_COURT_LENGTH,
        "width": BADMINTON_COURT_WIDTH,
        "singles_width": BADMINTON_SINGLES_WIDTH,
        "net_height": BADMINTON_NET_HEIGHT,
        "service_line_offset": BADMINTON_SHORT_SERVICE_OFFSET,
    },
    "tennis": {
        "length": TENNIS_COURT_LENGTH,
        "width": TENNIS_COURT_WIDTH,
        "singles_width": TENNIS_SINGLES_WIDTH,
        "net_height": TENNIS_NET_HEIGHT,
        "service_line_offset": TENNIS_SERVICE_OFFSET,
    },
}

# =============================================================================
# Court lines (for line correspondences)
# =============================================================================
# Each line is given by two landmark ids; endpoints are looked up per court
# type so the same line ids work for every court in COURT_VERTICES.

COURT_LINES = {
    "near_baseline": ("corner_near_left", "corner_near_right"),
    "far_baseline": ("corner_far_left", "corner_far_right"),
    "left_sideline": ("corner_near_left", "corner_far_left"),
    "right_sideline": ("corner_near_right", "corner_far_right"),
    "net": ("net_left", "net_right"),
    "short_service_near": ("short_service_near_left", "short_service_near_right"),
    "short_service_far": ("short_service_far_left", "short_service_far_right"),
    "center_line_near": ("center_near_baseline", "short_service_near_center"),
    "center_line_far": ("short_service_far_center", "center_far_baseline"),
    "singles_left": ("singles_near_left", "singles_far_left"),
    "singles_right": ("singles_near_right", "singles_far_right"),
}

# =============================================================================
# Calibration modes
# =============================================================================
# Point sets per court-visibility scenario. Order matters: it is the order
# in which missing points are suggested to the user.

CALIBRATION_MODES = {
    "minimal": {
        "description": "Near half only: near baseline, net posts and the near service T",
        "required": [
            "corner_near_left",
            "corner_near_right",
            "net_left",
            "net_right",
            "short_service_near_center",
        ],
        "optional": [
            "short_service_near_left",
            "short_service_near_right",
            "center_near_baseline",
        ],
        "min_points": 5,
    },
    "half_court": {
        "description": "Near half with service lines and centre line",
        "required": [
            "corner_near_left",
            "corner_near_right",
            "short_service_near_left",
            "short_service_near_right",
            "net_left",
            "net_right",
            "center_near_baseline",
        ],
        "optional": [
            "short_service_near_center",
            "singles_near_left",
            "singles_near_right",
        ],
        "min_points": 7,
    },
    "baseline_view": {
        "description": "Whole court seen from behind the near baseline",
        "required": [
            "corner_near_left",
            "corner_near_right",
            "corner_far_right",
            "corner_far_left",
            "net_left",
            "net_right",
            "short_service_near_center",
        ],
        "optional": [
            "short_service_far_center",
            "center_near_baseline",
            "center_far_baseline",
        ],
        "min_points": 7,
    },
    "full_court": {
        "description": "Whole court with service lines and centre line visible",
        "required": [
            "corner_near_left",
            "corner_near_right",
            "corner_far_right",
            "corner_far_left",
            "net_left",
            "net_right",
            "short_service_near_center",
            "short_service_far_center",
            "center_near_baseline",
        ],
        "optional": [
            "center_far_baseline",
            "short_service_near_left",
            "short_service_near_right",
            "short_service_far_left",
            "short_service_far_right",
        ],
        "min_points": 9,
    },
}
