"""
Visualization utilities for cloth simulation.
"""

from typing import List, Optional

import numpy as np
import matplotlib.pyplot as plt
import matplotlib.animation as animation


def _set_equal_limits(ax, points):
    lo = points.reshape(-1, 3).min(axis=0)
    hi = points.reshape(-1, 3).max(axis=0)
    center = 0.5 * (lo + hi)
    half = 0.5 * max(float((hi - lo).max()), 1e-3) + 0.05
    # Simulation is y-up, matplotlib 3D axes are z-up.
    ax.set_xlim(center[0] - half, center[0] + half)
    ax.set_ylim(center[2] - half, center[2] + half)
    ax.set_zlim(center[1] - half, center[1] + half)


def plot_cloth(positions: np.ndarray, triangles: np.ndarray, ax=None,
               title: Optional[str] = None):
    """Draw the cloth surface as a shaded triangle mesh.

    Args:
        positions: Array of shape (num_particles, 3).
        triangles: Array of shape (num_triangles, 3).
        ax: Existing 3D axes. If None, a new figure is created.
        title: Optional axes title.

    Returns:
        The matplotlib axes.
    """
    if ax is None:
        fig = plt.figure(figsize=(10, 8))
        ax = fig.add_subplot(111, projection="3d")

    ax.plot_trisurf(
        positions[:, 0], positions[:, 2], positions[:, 1],
        triangles=triangles, color="tab:blue", alpha=0.8, linewidth=0.2,
        edgecolor="k",
    )
    _set_equal_limits(ax, positions)
    ax.set_xlabel("X")
    ax.set_ylabel("Z")
    ax.set_zlabel("Y (up)")
    if title:
        ax.set_title(title)
    return ax


def animate_cloth(trajectory, triangles, path=None, interval=50):
    """Create an animated surface plot of the cloth over time"""
    fig = plt.figure(figsize=(10, 8))
    ax = fig.add_subplot(111, projection="3d")

    def animate(frame):
        ax.clear()
        plot_cloth(trajectory[frame], triangles, ax=ax,
                   title=f'Cloth Simulation - Frame {frame}/{len(trajectory)}')
        _set_equal_limits(ax, trajectory)

    anim = animation.FuncAnimation(fig, animate, frames=len(trajectory),
                                   interval=interval, repeat=True)

    if path is not None:
        writer = 'pillow' if str(path).endswith('.gif') else 'ffmpeg'
        anim.save(path, writer=writer)

    return anim


def plot_trajectories(
    trajectory: np.ndarray,
    particle_indices: Optional[List[int]] = None,
    dt: float = 0.016,
    figsize: tuple = (12, 6),
) -> plt.Figure:
    """Plot the height of selected particles over time.

    Args:
        trajectory: Array of shape (frames, num_particles, 3) containing positions.
        particle_indices: Indices of particles to plot. If None, plots a sample.
        dt: Time between frames.
        figsize: Figure size.

    Returns:
        The matplotlib figure.
    """
    if particle_indices is None:
        num_particles = trajectory.shape[1]
        particle_indices = list(range(0, num_particles, max(1, num_particles // 10)))

    fig, ax = plt.subplots(figsize=figsize)

    times = np.arange(len(trajectory)) * dt

    for idx in particle_indices:
        ax.plot(times, trajectory[:, idx, 1], label=f"Particle {idx}", alpha=0.7)

    ax.set_xlabel("Time (s)")
    ax.set_ylabel("Height")
    ax.set_title("Particle Heights Over Time")
    ax.grid(True, alpha=0.3)
    ax.legend(loc="upper right", fontsize="small")

    return fig
