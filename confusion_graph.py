"""
confusion_graph.py
Network of genres the classifier mixes up.

Nodes are genres, edges join pairs with at least one observed confusion.
The two directed (row-normalized) percentages of a pair are collapsed into
one undirected weight:
    mean  -> (p(a->b) + p(b->a)) / 2        (default)
    max   -> max(p(a->b), p(b->a))
    sum   -> p(a->b) + p(b->a)
Betweenness centrality is attached to each node for display only.
"""

import numpy as np
import pandas as pd
import networkx as nx
import matplotlib.pyplot as plt

from config import RANDOM_STATE, out

POLICIES = {
    "mean": lambda a, b: (a + b) / 2.0,
    "max": max,
    "sum": lambda a, b: a + b,
}


def confusion_edges(percent, policy="mean"):
    if policy not in POLICIES:
        raise ValueError(f"[ERROR] Unknown edge policy '{policy}' (expected one of {sorted(POLICIES)})")
    combine = POLICIES[policy]

    genres = sorted(set(percent.index) | set(percent.columns))
    square = percent.reindex(index=genres, columns=genres, fill_value=0.0).fillna(0.0)

    rows = []
    for i, a in enumerate(genres):
        for b in genres[i + 1:]:
            forward = float(square.loc[a, b])
            backward = float(square.loc[b, a])
            if forward == 0 and backward == 0:
                continue
            rows.append([a, b, forward, backward, float(combine(forward, backward))])

    return pd.DataFrame(rows, columns=["source", "target", "forward", "backward", "weight"])


def build_confusion_graph(percent, policy="mean"):
    edges = confusion_edges(percent, policy)

    G = nx.Graph()
    G.add_nodes_from(sorted(set(percent.index) | set(percent.columns)))
    for e in edges.itertuples(index=False):
        # stronger confusion = shorter path
        G.add_edge(e.source, e.target, weight=e.weight, distance=1.0 / e.weight)

    betweenness = nx.betweenness_centrality(G, weight="distance")
    nx.set_node_attributes(G, betweenness, "betweenness")

    print(f"[GRAPH] {G.number_of_nodes()} genres, {G.number_of_edges()} confusable pairs ({policy})")
    return G


def plot_confusion_graph(G, save_prefix="rf"):
    pos = nx.spring_layout(G, weight="weight", seed=RANDOM_STATE)

    bc = nx.get_node_attributes(G, "betweenness")
    sizes = [300 + 3000 * bc.get(n, 0.0) for n in G.nodes]
    widths = [1 + 8 * d["weight"] for _, _, d in G.edges(data=True)]

    plt.figure(figsize=(9, 7))
    nx.draw_networkx_nodes(G, pos, node_size=sizes, node_color="tab:blue", alpha=0.8)
    nx.draw_networkx_edges(G, pos, width=widths, edge_color="gray", alpha=0.7)
    nx.draw_networkx_labels(G, pos, font_size=8)
    plt.title(f"{save_prefix} – Genre Confusion Network")
    plt.axis("off")
    plt.tight_layout()
    path = out(save_prefix + "_confusion_graph.png")
    plt.savefig(path)
    plt.close()
    return path


def graph_table(G):
    """Edge list with node betweenness, for export."""
    bc = nx.get_node_attributes(G, "betweenness")
    rows = [
        [a, b, d["weight"], bc.get(a, np.nan), bc.get(b, np.nan)]
        for a, b, d in G.edges(data=True)
    ]
    return pd.DataFrame(rows, columns=["source", "target", "weight",
                                       "source_betweenness", "target_betweenness"])
