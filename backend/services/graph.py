# services/graph.py
"""
Graph Service
-------------
Two undirected graphs built from report metadata.

1. Keyword co-occurrence graph: an edge (a, b) weighted by the number of
   reports whose title token set contains both a and b. Co-occurrence is
   within a single report, never a sliding window.
2. Author collaboration graph: an edge between two author names that share
   a byline. Nodes are lowercased names, not (name, institute) profiles.

Complexity:
- Co-occurrence build: O(N * K^2) where K is the restricted tokens per report
- Collaboration build: O(N * A^2) where A is authors per report
"""

from collections import defaultdict


def top_keywords(kw_count, n):
    """Top-n keywords by count; ties keep discovery order."""
    ranked = sorted(kw_count.items(), key=lambda kv: kv[1], reverse=True)
    return [kw for kw, _ in ranked[:n]]


class CooccurrenceGraph:
    def __init__(self):
        # (a, b) with a < b -> weight
        self.edge_weights = {}
        # keyword -> {neighbour: weight}
        self.adj_list = defaultdict(dict)

    def build_graph(self, token_sets, allowed=None):
        """
        Count unordered pairs inside each token set.
        `allowed` restricts the vocabulary (None keeps every token).
        """
        for toks in token_sets:
            kws = [k for k in toks if allowed is None or k in allowed]
            if len(kws) < 2:
                continue
            kws = list(dict.fromkeys(kws))
            for i in range(len(kws)):
                for j in range(i + 1, len(kws)):
                    a, b = kws[i], kws[j]
                    key = (a, b) if a < b else (b, a)
                    self.edge_weights[key] = self.edge_weights.get(key, 0) + 1
        for (a, b), w in self.edge_weights.items():
            self.adj_list[a][b] = w
            self.adj_list[b][a] = w
        return self

    def top_edges(self, n):
        ranked = sorted(self.edge_weights.items(), key=lambda kv: kv[1], reverse=True)
        return [
            {"source": a, "target": b, "weight": w}
            for (a, b), w in ranked[:n]
        ]

    def neighbours(self, keyword, n=None):
        """Co-occurring keywords by weight desc, ties by keyword."""
        ranked = sorted(self.adj_list.get(keyword, {}).items(), key=lambda kv: (-kv[1], kv[0]))
        if n is not None:
            ranked = ranked[:n]
        return [kw for kw, _ in ranked]


class CollaborationGraph:
    def __init__(self):
        self.adj_list = defaultdict(set)

    def add_byline(self, names):
        """Connect every pair of (already deduplicated, lowercased) names."""
        for i in range(len(names)):
            self.adj_list.setdefault(names[i], set())
            for j in range(i + 1, len(names)):
                self.adj_list[names[i]].add(names[j])
                self.adj_list[names[j]].add(names[i])

    def degree(self, name):
        return len(self.adj_list.get(name, ()))
