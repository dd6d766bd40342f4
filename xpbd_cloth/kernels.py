"""
Warp kernels for the XPBD cloth solver.

Per-particle stages (prediction, height clamp, commit) are launched with one
thread per particle. Constraint relaxation is Gauss-Seidel: every constraint
sees the corrections of the ones before it, so ``solve_constraints`` is
launched with dim=1 and walks the constraint arena sequentially.

Note: Kernels must be defined at module level (not inside classes) per Warp requirements.
"""

import warp as wp

wp.set_module_options({"enable_backward": False})

# Constraint kinds stored in the arena ``kinds`` array.
ATTACH = wp.constant(0)
STRETCH = wp.constant(1)
BEND = wp.constant(2)

EPSILON = wp.constant(1.0e-5)
WEIGHT_EPSILON = wp.constant(1.0e-6)


@wp.func
def near_zero(a: float):
    return wp.abs(a) <= EPSILON


@wp.func
def project_attach(
    x: wp.array(dtype=wp.vec3),
    i: int,
    target: wp.vec3,
):
    """Move particle i onto its fixed target. Hard constraint, no multiplier."""
    x[i] = target
    return float(0.0)


@wp.func
def project_stretch(
    x: wp.array(dtype=wp.vec3),
    x_last: wp.array(dtype=wp.vec3),
    w: wp.array(dtype=float),
    i: int,
    j: int,
    rest_length: float,
    compliance: float,
    damping: float,
    lam: float,
    dt: float,
):
    """Project a distance constraint C = |x_i - x_j| - rest_length.

    Returns:
        The multiplier increment dlambda (0 when already satisfied).
    """
    diff = x[i] - x[j]
    dist = wp.length(diff)

    if near_zero(dist - rest_length):
        return float(0.0)

    compliance_tilde = compliance / (dt * dt)
    gamma = compliance_tilde * damping * dt

    n = diff / dist
    vel_i = x[i] - x_last[i]
    vel_j = x[j] - x_last[j]
    damp_term = gamma * (wp.dot(n, vel_i) - wp.dot(n, vel_j))

    dlambda = (-(dist - rest_length) - compliance_tilde * lam - damp_term) / (
        (1.0 + gamma) * (w[i] + w[j]) + compliance_tilde
    )

    x[i] = x[i] + n * (w[i] * dlambda)
    x[j] = x[j] - n * (w[j] * dlambda)
    return dlambda


@wp.func
def project_bend(
    x: wp.array(dtype=wp.vec3),
    x_last: wp.array(dtype=wp.vec3),
    w: wp.array(dtype=float),
    i1: int,
    i2: int,
    i3: int,
    i4: int,
    rest_angle: float,
    compliance: float,
    damping: float,
    lam: float,
    dt: float,
):
    """Project a dihedral constraint over triangles (i1, i2, i3) and (i1, i2, i4).

    Gradients follow the classic PBD bending formulation: q3 and q4 move the
    apexes, q2 the far end of the shared edge, q1 balances the others.

    Returns:
        The multiplier increment dlambda (0 when skipped).
    """
    p2 = x[i2] - x[i1]
    p3 = x[i3] - x[i1]
    p4 = x[i4] - x[i1]
    c23 = wp.cross(p2, p3)
    c24 = wp.cross(p2, p4)
    n1 = wp.normalize(c23)
    n2 = wp.normalize(c24)
    len23 = wp.length(c23) + EPSILON
    len24 = wp.length(c24) + EPSILON

    if near_zero(wp.length(n1)):
        return float(0.0)
    if near_zero(wp.length(n2)):
        return float(0.0)

    d = wp.clamp(wp.dot(n1, n2), -1.0, 1.0)
    phi = wp.acos(d)

    if near_zero(phi - rest_angle):
        return float(0.0)
    if near_zero(1.0 - d * d):
        return float(0.0)

    q3 = (wp.cross(p2, n2) + wp.cross(n1, p2) * d) / len23
    q4 = (wp.cross(p2, n1) + wp.cross(n2, p2) * d) / len24
    q2 = -(wp.cross(p3, n2) + wp.cross(n1, p3) * d) / len23 - (
        wp.cross(p4, n1) + wp.cross(n2, p4) * d
    ) / len24
    q1 = -q2 - q3 - q4

    weighted_sum = (
        WEIGHT_EPSILON
        + w[i1] * wp.dot(q1, q1)
        + w[i2] * wp.dot(q2, q2)
        + w[i3] * wp.dot(q3, q3)
        + w[i4] * wp.dot(q4, q4)
    ) / (1.0 - d * d)

    compliance_tilde = compliance / (dt * dt)
    gamma = compliance_tilde * damping * dt

    denom = wp.sqrt(1.0 - d * d)
    damp_term = (
        wp.dot(q1, x[i1] - x_last[i1])
        + wp.dot(q2, x[i2] - x_last[i2])
        + wp.dot(q3, x[i3] - x_last[i3])
        + wp.dot(q4, x[i4] - x_last[i4])
    ) * (gamma / denom)

    dlambda = (rest_angle - phi - compliance_tilde * lam - damp_term) / (
        (1.0 + gamma) * weighted_sum + compliance_tilde
    )

    scale = dlambda / denom
    x[i1] = x[i1] + q1 * (w[i1] * scale)
    x[i2] = x[i2] + q2 * (w[i2] * scale)
    x[i3] = x[i3] + q3 * (w[i3] * scale)
    x[i4] = x[i4] + q4 * (w[i4] * scale)
    return dlambda


@wp.kernel
def predict(
    x: wp.array(dtype=wp.vec3),
    x_pred: wp.array(dtype=wp.vec3),
    v: wp.array(dtype=wp.vec3),
    f: wp.array(dtype=wp.vec3),
    w: wp.array(dtype=float),
    dt: float,
):
    """Explicit prediction: v += dt * f * w, x_pred = x + dt * v.

    Args:
        x: Committed positions.
        x_pred: Predicted positions (overwritten).
        v: Velocities (modified in place).
        f: External forces.
        w: Inverse masses.
        dt: Time step.
    """
    i = wp.tid()
    v[i] = v[i] + f[i] * (dt * w[i])
    x_pred[i] = x[i] + v[i] * dt


@wp.kernel
def reset_float(arr: wp.array(dtype=float)):
    i = wp.tid()
    arr[i] = 0.0


@wp.kernel
def solve_constraints(
    x: wp.array(dtype=wp.vec3),
    x_last: wp.array(dtype=wp.vec3),
    w: wp.array(dtype=float),
    kinds: wp.array(dtype=wp.int32),
    indices: wp.array2d(dtype=wp.int32),
    rest: wp.array(dtype=float),
    targets: wp.array(dtype=wp.vec3),
    compliance: wp.array(dtype=float),
    damping: wp.array(dtype=float),
    lambdas: wp.array(dtype=float),
    dt: float,
    iterations: int,
):
    """Run Gauss-Seidel passes over the whole constraint arena.

    Must be launched with dim=1 (single thread).

    Args:
        x: Positions being relaxed (modified in place).
        x_last: Positions of the previous step, reference for damping.
        w: Inverse masses.
        kinds: Constraint kind per record (ATTACH, STRETCH or BEND).
        indices: Particle indices per record (N x 4, unused slots are 0).
        rest: Rest length or rest angle per record.
        targets: Attach target per record.
        compliance: Compliance per record.
        damping: Damping coefficient per record.
        lambdas: Accumulated multipliers (modified in place).
        dt: Time step.
        iterations: Number of passes.
    """
    for it in range(iterations):
        for c in range(kinds.shape[0]):
            kind = kinds[c]
            dlambda = float(0.0)
            if kind == ATTACH:
                dlambda = project_attach(x, indices[c, 0], targets[c])
            elif kind == STRETCH:
                dlambda = project_stretch(
                    x, x_last, w,
                    indices[c, 0], indices[c, 1],
                    rest[c], compliance[c], damping[c], lambdas[c], dt,
                )
            elif kind == BEND:
                dlambda = project_bend(
                    x, x_last, w,
                    indices[c, 0], indices[c, 1], indices[c, 2], indices[c, 3],
                    rest[c], compliance[c], damping[c], lambdas[c], dt,
                )
            lambdas[c] = lambdas[c] + dlambda


@wp.kernel
def clamp_height(
    x: wp.array(dtype=wp.vec3),
    lower: float,
    upper: float,
):
    """Clamp the vertical coordinate into [lower, upper] (floor and ceiling)."""
    i = wp.tid()
    p = x[i]
    x[i] = wp.vec3(p[0], wp.clamp(p[1], lower, upper), p[2])


@wp.kernel
def commit(
    x: wp.array(dtype=wp.vec3),
    x_pred: wp.array(dtype=wp.vec3),
    v: wp.array(dtype=wp.vec3),
    damping: float,
    dt: float,
):
    """Derive velocities from the relaxed displacement and accept the positions.

    Args:
        x: Committed positions (overwritten with x_pred).
        x_pred: Relaxed predicted positions.
        v: Velocities (overwritten).
        damping: Global velocity damping in [0, 1].
        dt: Time step.
    """
    i = wp.tid()
    v[i] = (x_pred[i] - x[i]) * ((1.0 - damping) / dt)
    x[i] = x_pred[i]
