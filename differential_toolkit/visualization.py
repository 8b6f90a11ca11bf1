"""
Visualization Module for Differential Abundance Toolkit

Functions for creating quality-control and result plots for differential
abundance analysis. Every plotting function shows the figure and returns it.
"""

import pandas as pd
import numpy as np
import matplotlib.pyplot as plt
import seaborn as sns
from sklearn.decomposition import PCA
from sklearn.preprocessing import StandardScaler
from typing import Dict, List, Optional, Tuple, Union

Metadata = Union[Dict[str, Dict], pd.DataFrame]


def _sample_groups(
    sample_columns: List[str], sample_metadata: Metadata, group_column: str = "Group"
) -> List[str]:
    """Group label of every sample, 'Unknown' where missing."""
    if isinstance(sample_metadata, pd.DataFrame):
        lookup = sample_metadata[group_column].to_dict()
    else:
        lookup = {s: meta.get(group_column) for s, meta in sample_metadata.items()}

    groups = []
    for sample in sample_columns:
        group = lookup.get(sample, "Unknown")
        if group is None or pd.isna(group):
            group = "Unknown"
        groups.append(str(group))
    return groups


def _group_colors(groups: List[str], group_colors: Optional[Dict[str, str]]) -> Dict:
    unique_groups = list(dict.fromkeys(groups))
    if group_colors is None:
        colors = plt.cm.tab10(np.linspace(0, 1, max(len(unique_groups), 1)))
        group_colors = {group: colors[i] for i, group in enumerate(unique_groups)}
    return group_colors


def plot_box_plot(
    data: pd.DataFrame,
    sample_columns: List[str],
    sample_metadata: Metadata,
    group_column: str = "Group",
    group_colors: Optional[Dict[str, str]] = None,
    sentinel: Optional[float] = 0.0,
    figsize: Tuple[int, int] = (16, 8),
    title: str = "Protein Abundance Distribution by Sample",
):
    """
    Create box plot of log-scale protein abundances by sample.

    Sentinel entries are left out of the boxes.

    Parameters:
    -----------
    data : pd.DataFrame
        Log-scale abundances
    sample_columns : List[str]
        List of sample column names
    sample_metadata : dict or pd.DataFrame
        Sample metadata (dict of dicts, or DataFrame indexed by sample)
    group_colors : Dict[str, str], optional
        Colors for each group
    figsize : Tuple[int, int]
        Figure size (width, height)
    title : str
        Plot title
    """

    plot_data = data[sample_columns]
    if sentinel is not None:
        plot_data = plot_data.mask(plot_data == sentinel)

    groups = _sample_groups(sample_columns, sample_metadata, group_column)
    group_colors = _group_colors(groups, group_colors)

    samples_by_group = {}
    for sample, group in zip(sample_columns, groups):
        samples_by_group.setdefault(group, []).append(sample)

    fig, ax = plt.subplots(figsize=figsize)

    positions = []
    box_data = []
    colors = []
    labels = []
    pos = 0

    for group in sorted(samples_by_group):
        for sample in samples_by_group[group]:
            box_data.append(plot_data[sample].dropna())
            positions.append(pos)
            colors.append(group_colors.get(group, "#7f7f7f"))
            labels.append(sample)
            pos += 1
        pos += 0.5  # Add space between groups

    bp = ax.boxplot(
        box_data,
        positions=positions,
        patch_artist=True,
        widths=0.8,
        showfliers=True,
        flierprops={"marker": "o", "markersize": 2, "alpha": 0.5},
    )
    for patch, color in zip(bp["boxes"], colors):
        patch.set_facecolor(color)
        patch.set_alpha(0.7)

    ax.set_xlabel("Sample", fontsize=14)
    ax.set_ylabel("Log Abundance", fontsize=14)
    ax.set_title(title, fontsize=16, fontweight="bold")
    ax.set_xticks(positions)
    ax.set_xticklabels(labels, rotation=45, ha="right", fontsize=10)
    ax.grid(True, alpha=0.3, axis="y")

    legend_elements = [
        plt.Rectangle((0, 0), 1, 1, facecolor=group_colors.get(g, "#7f7f7f"), alpha=0.7, label=g)
        for g in sorted(samples_by_group)
    ]
    ax.legend(handles=legend_elements, loc="upper right")

    plt.tight_layout()
    plt.show()

    print("Box plot summary:")
    print(f"Total samples plotted: {len(box_data)}")
    return fig


def leading_logfc_distances(data: pd.DataFrame, top: int = 500) -> pd.DataFrame:
    """
    Pairwise sample distances from the leading log fold changes.

    For each pair of samples the distance is the root mean square of the
    `top` largest absolute differences between the two samples.
    """
    values = data.to_numpy(dtype=np.float64)
    n_features, n_samples = values.shape
    top = min(top, n_features)

    distances = np.zeros((n_samples, n_samples))
    for i in range(n_samples - 1):
        for j in range(i + 1, n_samples):
            squared = (values[:, i] - values[:, j]) ** 2
            leading = np.partition(squared, n_features - top)[n_features - top:]
            distances[i, j] = distances[j, i] = np.sqrt(leading.mean())

    return pd.DataFrame(distances, index=data.columns, columns=data.columns)


def plot_mds(
    data: pd.DataFrame,
    sample_columns: List[str],
    sample_metadata: Metadata,
    group_column: str = "Group",
    top: int = 500,
    group_colors: Optional[Dict[str, str]] = None,
    figsize: Tuple[int, int] = (10, 8),
):
    """
    Multidimensional scaling plot of samples on leading log fold change
    distances (classical scaling of the distance matrix).

    Parameters:
    -----------
    data : pd.DataFrame
        Log-scale abundances, proteins x samples
    sample_columns : List[str]
        Sample column names
    sample_metadata : dict or pd.DataFrame
        Sample metadata
    top : int
        Number of leading differences used per sample pair
    """
    if len(sample_columns) < 3:
        raise ValueError("MDS plot needs at least 3 samples")

    distances = leading_logfc_distances(data[sample_columns], top=top).to_numpy()

    # Classical scaling: double-centre the squared distances
    n = distances.shape[0]
    centering = np.eye(n) - np.ones((n, n)) / n
    inner = -0.5 * centering @ (distances ** 2) @ centering
    eigenvalues, eigenvectors = np.linalg.eigh(inner)
    order = np.argsort(eigenvalues)[::-1][:2]
    coords = eigenvectors[:, order] * np.sqrt(np.clip(eigenvalues[order], 0.0, None))
    explained = np.clip(eigenvalues[order], 0.0, None) / np.clip(eigenvalues, 0.0, None).sum()

    groups = _sample_groups(sample_columns, sample_metadata, group_column)
    group_colors = _group_colors(groups, group_colors)

    fig, ax = plt.subplots(figsize=figsize)
    for group in dict.fromkeys(groups):
        idx = [i for i, g in enumerate(groups) if g == group]
        ax.scatter(
            coords[idx, 0], coords[idx, 1],
            color=group_colors.get(group, "#7f7f7f"),
            label=group, alpha=0.7, s=100, edgecolors="black", linewidth=0.5,
        )
    for i, sample in enumerate(sample_columns):
        ax.annotate(sample, (coords[i, 0], coords[i, 1]), fontsize=8, alpha=0.8,
                    xytext=(4, 4), textcoords="offset points")

    ax.set_xlabel(f"Leading logFC dim 1 ({explained[0]:.1%})")
    ax.set_ylabel(f"Leading logFC dim 2 ({explained[1]:.1%})")
    ax.set_title(f"MDS Plot (top {min(top, len(data))} proteins)")
    ax.legend()
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.show()
    return fig


def plot_pca(
    data: pd.DataFrame,
    sample_columns: List[str],
    sample_metadata: Metadata,
    group_column: str = "Group",
    group_colors: Optional[Dict[str, str]] = None,
    figsize: Tuple[int, int] = (10, 8),
):
    """
    Plot PCA of samples.

    Parameters:
    -----------
    data : pd.DataFrame
        Expression data
    sample_columns : List[str]
        Sample column names
    sample_metadata : dict or pd.DataFrame
        Sample metadata
    group_colors : Dict[str, str], optional
        Colors for groups
    figsize : Tuple[int, int]
        Figure size
    """

    complete_data = data[sample_columns].dropna()
    complete_data = complete_data[complete_data.std(axis=1) > 0]

    if len(complete_data) < 2:
        raise ValueError("Not enough variable proteins for PCA")

    # Samples as rows
    scaled_data = StandardScaler().fit_transform(complete_data.T)
    pca = PCA(n_components=2)
    pca_result = pca.fit_transform(scaled_data)

    groups = _sample_groups(sample_columns, sample_metadata, group_column)
    group_colors = _group_colors(groups, group_colors)

    fig, ax = plt.subplots(figsize=figsize)
    for group in dict.fromkeys(groups):
        group_indices = [i for i, g in enumerate(groups) if g == group]
        ax.scatter(
            pca_result[group_indices, 0],
            pca_result[group_indices, 1],
            color=group_colors.get(group, "#7f7f7f"),
            label=group,
            alpha=0.7,
            s=100,
            edgecolors="black",
            linewidth=0.5,
        )

    ax.set_xlabel(f"PC1 ({pca.explained_variance_ratio_[0]:.1%} variance)")
    ax.set_ylabel(f"PC2 ({pca.explained_variance_ratio_[1]:.1%} variance)")
    ax.set_title("Principal Component Analysis")
    ax.legend()
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.show()

    print("PCA summary:")
    print(f"PC1 explains {pca.explained_variance_ratio_[0]:.1%} of variance")
    print(f"PC2 explains {pca.explained_variance_ratio_[1]:.1%} of variance")
    return fig


def plot_volcano(
    differential_df: pd.DataFrame,
    fc_threshold: float = 1.0,
    p_threshold: float = 0.05,
    p_column: str = "adj.P.Val",
    label_column: str = "Protein",
    label_top_n: int = 10,
    figsize: Tuple[int, int] = (12, 8),
    title: Optional[str] = None,
):
    """
    Create volcano plot for differential analysis results.

    Parameters:
    -----------
    differential_df : pd.DataFrame
        Table with logFC and p-value columns (top_table output)
    fc_threshold : float
        Absolute log fold change threshold
    p_threshold : float
        Threshold on p_column
    p_column : str
        "adj.P.Val" or "P.Value"
    label_column : str
        Column with labels for the top proteins
    label_top_n : int
        Number of top significant proteins to label
    """

    if len(differential_df) == 0:
        raise ValueError("No data to plot")
    if p_column not in differential_df.columns:
        raise ValueError(f"Column '{p_column}' not found in results")

    df = differential_df.copy()
    df["neg_log10_p"] = -np.log10(df["P.Value"].clip(lower=1e-300))

    significant = df[p_column] < p_threshold
    up = significant & (df["logFC"] >= fc_threshold)
    down = significant & (df["logFC"] <= -fc_threshold)

    df["category"] = "Not significant"
    df.loc[significant, "category"] = "Significant, small change"
    df.loc[up, "category"] = "Increased"
    df.loc[down, "category"] = "Decreased"
    palette = {
        "Not significant": "lightgray",
        "Significant, small change": "orange",
        "Increased": "red",
        "Decreased": "blue",
    }

    fig, ax = plt.subplots(figsize=figsize)
    for category, color in palette.items():
        subset = df[df["category"] == category]
        if len(subset):
            ax.scatter(subset["logFC"], subset["neg_log10_p"], c=color,
                       alpha=0.6, s=20, label=f"{category} ({len(subset)})")

    ax.axvline(fc_threshold, color="gray", linestyle="--", alpha=0.5)
    ax.axvline(-fc_threshold, color="gray", linestyle="--", alpha=0.5)

    if label_top_n and label_column in df.columns:
        for _, row in df[significant].nsmallest(label_top_n, "P.Value").iterrows():
            ax.annotate(str(row[label_column]), (row["logFC"], row["neg_log10_p"]),
                        fontsize=8, alpha=0.8, xytext=(3, 3), textcoords="offset points")

    ax.set_xlabel("Log Fold Change", fontsize=14)
    ax.set_ylabel("-log10(P-value)", fontsize=14)
    ax.set_title(title or "Volcano Plot", fontsize=16, fontweight="bold")
    ax.legend(loc="upper left")
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.show()

    print(f"Volcano plot: {int(up.sum())} increased, {int(down.sum())} decreased "
          f"({p_column} < {p_threshold}, |logFC| >= {fc_threshold})")
    return fig


def plot_pvalue_histogram(
    differential_df: pd.DataFrame,
    p_column: str = "P.Value",
    bins: int = 50,
    figsize: Tuple[int, int] = (10, 6),
):
    """Histogram of raw p-values; a flat shape indicates no differential signal."""
    values = differential_df[p_column].dropna()

    fig, ax = plt.subplots(figsize=figsize)
    ax.hist(values, bins=bins, range=(0, 1), color="steelblue", edgecolor="black", alpha=0.7)
    ax.axhline(len(values) / bins, color="red", linestyle="--", alpha=0.7, label="Uniform")
    ax.set_xlabel("P-value")
    ax.set_ylabel("Number of proteins")
    ax.set_title("P-value Distribution")
    ax.legend()

    plt.tight_layout()
    plt.show()
    return fig


def plot_sample_correlation_heatmap(
    data: pd.DataFrame,
    sample_columns: List[str],
    method: str = "pearson",
    figsize: Tuple[int, int] = (12, 10),
    title: str = "Sample Correlation",
):
    """Heatmap of pairwise sample correlations."""
    corr = data[sample_columns].corr(method=method)

    fig, ax = plt.subplots(figsize=figsize)
    sns.heatmap(corr, cmap="RdYlBu_r", square=True, ax=ax,
                annot=len(sample_columns) <= 12, fmt=".2f",
                cbar_kws={"label": f"{method.title()} correlation"})
    ax.set_title(title, fontsize=14, fontweight="bold")

    plt.tight_layout()
    plt.show()
    return fig


def plot_top_protein_heatmap(
    data: pd.DataFrame,
    differential_df: pd.DataFrame,
    sample_columns: List[str],
    sample_metadata: Metadata,
    group_column: str = "Group",
    id_column: str = "Protein",
    top_n: int = 50,
    group_colors: Optional[Dict[str, str]] = None,
    figsize: Tuple[int, int] = (12, 12),
):
    """
    Clustered heatmap of row-scaled abundances for the top proteins by
    p-value.
    """
    ranked = differential_df.sort_values("P.Value", kind="mergesort")
    top_ids = list(dict.fromkeys(ranked[id_column]))[:top_n]
    top_ids = [p for p in top_ids if p in data.index]

    subset = data.loc[top_ids, sample_columns]
    subset = subset[subset.std(axis=1) > 0]
    if len(subset) == 0:
        raise ValueError("No variable proteins to plot")

    z_scores = subset.sub(subset.mean(axis=1), axis=0).div(subset.std(axis=1), axis=0)

    groups = _sample_groups(sample_columns, sample_metadata, group_column)
    group_colors = _group_colors(groups, group_colors)
    col_colors = pd.Series(
        [group_colors.get(g, "#7f7f7f") for g in groups], index=sample_columns, name=group_column
    )

    grid = sns.clustermap(
        z_scores,
        cmap="RdBu_r",
        center=0,
        col_colors=col_colors,
        row_cluster=len(z_scores) > 1,
        col_cluster=len(sample_columns) > 1,
        figsize=figsize,
        yticklabels=len(z_scores) <= 60,
    )
    grid.ax_heatmap.set_xlabel("Sample")
    grid.ax_heatmap.set_ylabel("Protein")
    grid.figure.suptitle(f"Top {len(z_scores)} proteins (row z-scores)", y=1.02)

    plt.show()
    return grid.figure


def plot_protein_boxplots(
    data: pd.DataFrame,
    proteins: List[str],
    sample_columns: List[str],
    sample_metadata: Metadata,
    group_column: str = "Group",
    group_colors: Optional[Dict[str, str]] = None,
    ncols: int = 3,
):
    """Per-group boxplots (with individual samples) for selected proteins."""
    proteins = [p for p in proteins if p in data.index]
    if not proteins:
        raise ValueError("None of the requested proteins are in the data")

    groups = _sample_groups(sample_columns, sample_metadata, group_column)
    group_colors = _group_colors(groups, group_colors)
    order = sorted(set(groups))

    ncols = min(ncols, len(proteins))
    nrows = int(np.ceil(len(proteins) / ncols))
    fig, axes = plt.subplots(nrows, ncols, figsize=(4 * ncols, 3.5 * nrows), squeeze=False)

    for ax, protein in zip(axes.flat, proteins):
        long_df = pd.DataFrame({
            "Abundance": data.loc[protein, sample_columns].to_numpy(dtype=float),
            "Group": groups,
        })
        sns.boxplot(data=long_df, x="Group", y="Abundance", hue="Group", order=order,
                    palette=group_colors, ax=ax, showfliers=False, legend=False)
        sns.stripplot(data=long_df, x="Group", y="Abundance", order=order,
                      color="black", size=4, ax=ax)
        ax.set_title(str(protein), fontsize=10)
        ax.set_xlabel("")

    for ax in list(axes.flat)[len(proteins):]:
        ax.set_visible(False)

    plt.tight_layout()
    plt.show()
    return fig
