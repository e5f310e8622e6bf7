from __future__ import annotations
from dataclasses import dataclass
import numpy as np
import pandas as pd
from sklearn.metrics import (
    accuracy_score,
    auc,
    average_precision_score,
    cohen_kappa_score,
    confusion_matrix,
    precision_recall_curve,
    roc_curve,
)
from cep_common.console import info
from cep_common.errors import DegenerateSplitError
from cep_common.records import PARTIES, POSITIVE_CLASS, TARGET
from cep_ml.features import model_frame
from cep_ml.forest import TrainedModel


@dataclass
class EvaluationArtifacts:
    predicted: pd.Series
    probability: pd.Series
    confusion: pd.DataFrame
    accuracy: float
    kappa: float
    roc: pd.DataFrame
    auc: float
    pr: pd.DataFrame
    average_precision: float
    misclassified: pd.DataFrame
    positive_class: str = POSITIVE_CLASS


def roc_table(y_true: np.ndarray, score: np.ndarray, positive: str = POSITIVE_CLASS) -> tuple[pd.DataFrame, float]:
    """ROC points and trapezoidal AUC with `positive` as the event class."""
    y_bin = (np.asarray(y_true) == positive).astype(int)
    if y_bin.min() == y_bin.max():
        raise DegenerateSplitError("ROC/AUC needs both classes in the evaluation set")
    fpr, tpr, thr = roc_curve(y_bin, score)
    return pd.DataFrame({"fpr": fpr, "tpr": tpr, "threshold": thr}), float(auc(fpr, tpr))


def pr_table(y_true: np.ndarray, score: np.ndarray, positive: str = POSITIVE_CLASS) -> tuple[pd.DataFrame, float]:
    y_bin = (np.asarray(y_true) == positive).astype(int)
    precision, recall, thr = precision_recall_curve(y_bin, score)
    # sklearn returns one more (precision, recall) point than thresholds
    thr = np.append(thr, np.nan)
    ap = float(average_precision_score(y_bin, score))
    return pd.DataFrame({"precision": precision, "recall": recall, "threshold": thr}), ap


def evaluate(model: TrainedModel, test: pd.DataFrame, target: str = TARGET) -> EvaluationArtifacts:
    X, y = model_frame(test, model.features, target)
    pred = pd.Series(model.predict(X), index=X.index, name="predicted").astype(str)
    prob = pd.Series(model.positive_proba(X), index=X.index, name="probability")

    labels = list(PARTIES)
    cm = confusion_matrix(y, pred, labels=labels)
    confusion = pd.DataFrame(
        cm,
        index=pd.Index(labels, name="actual"),
        columns=pd.Index(labels, name="predicted"),
    )

    roc, roc_auc = roc_table(y.to_numpy(), prob.to_numpy())
    pr, ap = pr_table(y.to_numpy(), prob.to_numpy())

    wrong = y != pred
    ident = [c for c in ("geoid", "name", "state") if c in test.columns]
    misclassified = test.loc[wrong, ident].copy()
    misclassified["actual"] = y[wrong]
    misclassified["predicted"] = pred[wrong]
    misclassified["probability"] = prob[wrong]

    out = EvaluationArtifacts(
        predicted=pred,
        probability=prob,
        confusion=confusion,
        accuracy=float(accuracy_score(y, pred)),
        kappa=float(cohen_kappa_score(y, pred)),
        roc=roc,
        auc=roc_auc,
        pr=pr,
        average_precision=ap,
        misclassified=misclassified.reset_index(drop=True),
    )
    info({
        "test_n": int(len(y)),
        "accuracy": round(out.accuracy, 4),
        "kappa": round(out.kappa, 4),
        "auc": round(out.auc, 4),
        "misclassified": int(wrong.sum()),
    })
    return out


def metrics_table(ev: EvaluationArtifacts) -> list[tuple[str, str, int, float]]:
    """(metric, scope, fold, value) rows; fold -1 marks a non-CV aggregate."""
    return [
        ("accuracy", "test", -1, ev.accuracy),
        ("kappa", "test", -1, ev.kappa),
        ("auc", "test", -1, ev.auc),
        ("average_precision", "test", -1, ev.average_precision),
        ("misclassified", "test", -1, float(len(ev.misclassified))),
    ]
