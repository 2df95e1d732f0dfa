"""Edit-distance alignment of a target sentence against a final transcript."""
from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from .schemas import AlignmentSummary, WordComparisonResult
from .similarity import word_similarity

# Similarity at or above this costs nothing in the DP.
MATCH_COST_THRESHOLD = 0.6
# Similarity above this is shown to the learner as correct.
DISPLAY_CORRECT_THRESHOLD = 0.7

MISSING_WORD = "___"

# (op, target_index, spoken_index); op in {"sub", "del", "ins"}
Step = Tuple[str, Optional[int], Optional[int]]


def align_sequences(target: Sequence[str], spoken: Sequence[str]) -> Tuple[List[Step], List[List[float]]]:
	"""Compute the minimum-cost word alignment.

	Each cell holds ``(edits, mismatch)``: the number of edits (a pair with
	similarity >= 0.6 is free, everything else costs 1) and, to separate
	alignments with the same edit count, the summed ``1 - similarity`` of the
	pairs taken. Remaining ties go to substitute, then delete, then insert.

	Returns the backtracked path (in sentence order) and the pairwise
	similarity matrix used to fill it, so callers do not score pairs twice.
	"""
	m, n = len(target), len(spoken)
	sims = [[word_similarity(target[i], spoken[j]) for j in range(n)] for i in range(m)]

	def pair_cost(i: int, j: int) -> Tuple[int, float]:
		similarity = sims[i][j]
		return (0 if similarity >= MATCH_COST_THRESHOLD else 1), 1.0 - similarity

	dp: List[List[Tuple[int, float]]] = [[(0, 0.0)] * (n + 1) for _ in range(m + 1)]
	for i in range(1, m + 1):
		dp[i][0] = (i, 0.0)
	for j in range(1, n + 1):
		dp[0][j] = (j, 0.0)

	for i in range(1, m + 1):
		for j in range(1, n + 1):
			edits, mismatch = pair_cost(i - 1, j - 1)
			diag, up, left = dp[i - 1][j - 1], dp[i - 1][j], dp[i][j - 1]
			dp[i][j] = min(
				(diag[0] + edits, diag[1] + mismatch),
				(up[0] + 1, up[1]),
				(left[0] + 1, left[1]),
			)

	path: List[Step] = []
	i, j = m, n
	while i > 0 or j > 0:
		if i > 0 and j > 0:
			edits, mismatch = pair_cost(i - 1, j - 1)
			diag = dp[i - 1][j - 1]
			if dp[i][j] == (diag[0] + edits, diag[1] + mismatch):
				path.append(("sub", i - 1, j - 1))
				i -= 1
				j -= 1
				continue
		if i > 0 and dp[i][j] == (dp[i - 1][j][0] + 1, dp[i - 1][j][1]):
			path.append(("del", i - 1, None))
			i -= 1
		else:
			path.append(("ins", None, j - 1))
			j -= 1
	path.reverse()
	return path, sims


def align_with_summary(target: Sequence[str], spoken: Sequence[str]) -> AlignmentSummary:
	path, sims = align_sequences(target, spoken)
	results: List[WordComparisonResult] = []
	correct = substituted = missing = extra = 0
	for op, ti, sj in path:
		if op == "sub":
			similarity = sims[ti][sj]
			is_correct = similarity > DISPLAY_CORRECT_THRESHOLD
			if is_correct:
				correct += 1
			else:
				substituted += 1
			results.append(WordComparisonResult(
				word=spoken[sj],
				original_word=target[ti],
				is_correct=is_correct,
				similarity=similarity,
			))
		elif op == "del":
			missing += 1
			results.append(WordComparisonResult(
				word=MISSING_WORD, original_word=target[ti], is_correct=False, similarity=0.0,
			))
		else:
			extra += 1
			results.append(WordComparisonResult(
				word=spoken[sj], original_word="", is_correct=False, similarity=0.0,
			))
	accuracy = correct / len(target) if target else 1.0
	return AlignmentSummary(
		results=results,
		correct=correct,
		substituted=substituted,
		missing=missing,
		extra=extra,
		accuracy=accuracy,
	)


def align_final(target: Sequence[str], spoken: Sequence[str]) -> List[WordComparisonResult]:
	"""Align target tokens against final transcript tokens.

	Every target token appears exactly once in the output, either paired with a
	spoken token or as a ``"___"`` placeholder. Spoken tokens with no partner are
	reported with an empty ``original_word``.
	"""
	return align_with_summary(target, spoken).results
