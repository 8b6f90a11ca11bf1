"""
Empirical Bayes Module for Differential Abundance Toolkit

Moderated statistics in the style of limma (Smyth 2004): the residual
variances of all proteins are pooled to estimate a scaled inverse-chi-square
prior, every protein's variance is shrunk towards that prior, and the shrunk
variances are used for moderated t-statistics, p-values, log-odds (B) and
moderated F-statistics.

References:
    Smyth (2004) "Linear models and empirical Bayes methods for assessing
    differential expression in microarray experiments", SAGMB 3(1).
"""

import warnings
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import pandas as pd
from scipy.special import digamma, polygamma
from scipy.stats import chi2
from scipy.stats import f as f_dist
from scipy.stats import rankdata
from scipy.stats import t as t_dist

from .linear_model import LinearModelFit
from .validation import DesignMatrixError

# Relative floor applied to residual variances before taking logs
VARIANCE_FLOOR = 1e-5

# Prior df above which the prior is treated as exact in the B-statistic
LARGE_DF_PRIOR = 1e6


@dataclass(frozen=True)
class EmpiricalBayesPrior:
    """
    Hyperparameters of the scaled inverse-chi-square variance prior.

    df_prior is infinite when the moment estimate could not be formed; the
    prior variance is then the mean of the (floored) protein variances and
    every protein receives the prior variance.
    """

    df_prior: float
    var_prior: float
    converged: bool = True
    message: str = ""

    @property
    def is_infinite(self) -> bool:
        return bool(np.isinf(self.df_prior))


@dataclass(frozen=True)
class ModeratedFit:
    """Contrast fit plus empirical Bayes moderated statistics."""

    fit: LinearModelFit
    prior: EmpiricalBayesPrior
    s2_post: pd.Series
    df_total: pd.Series
    t: pd.DataFrame
    p_value: pd.DataFrame
    lods: pd.DataFrame
    F: pd.Series
    F_p_value: pd.Series
    zero_variance: pd.Series
    var_prior_coef: np.ndarray
    proportion: float

    @property
    def coefficients(self) -> pd.DataFrame:
        return self.fit.coefficients

    @property
    def stdev_unscaled(self) -> pd.DataFrame:
        return self.fit.stdev_unscaled

    @property
    def se(self) -> pd.DataFrame:
        """Moderated standard errors (proteins x contrasts)."""
        return self.fit.stdev_unscaled.mul(np.sqrt(self.s2_post), axis=0)

    @property
    def contrast_names(self):
        return list(self.fit.coefficients.columns)


def trigamma_inverse(x: float, tol: float = 1e-8, max_iter: int = 50) -> Tuple[float, bool]:
    """
    Solve trigamma(y) = x for y.

    Newton iteration on 1/trigamma(y), which is convex and nearly linear,
    started from y = 0.5 + 1/x.

    Returns:
    --------
    (y, converged)
    """
    x = float(x)
    if np.isnan(x) or x < 0:
        return np.nan, False
    if x == 0:
        return np.inf, True
    if x > 1e7:
        return 1.0 / np.sqrt(x), True
    if x < 1e-6:
        return 1.0 / x, True

    y = 0.5 + 1.0 / x
    for _ in range(max_iter):
        tri = float(polygamma(1, y))
        dif = tri * (1.0 - tri / x) / float(polygamma(2, y))
        y = y + dif
        if y <= 0:
            return np.nan, False
        if abs(dif) / y < tol:
            return y, True

    return y, False


def _fallback_prior(x: np.ndarray, message: str) -> EmpiricalBayesPrior:
    warnings.warn(
        f"Empirical Bayes prior estimation fell back to infinite prior df: {message}",
        UserWarning,
        stacklevel=3,
    )
    return EmpiricalBayesPrior(
        df_prior=np.inf, var_prior=float(np.mean(x)), converged=False, message=message
    )


def fit_f_dist(sigma2, df) -> EmpiricalBayesPrior:
    """
    Estimate the prior df (d0) and prior variance (s0^2) by moment matching
    on the log residual variances.

        e    = log(s^2) - digamma(df/2) + log(df/2)
        evar = var(e) - mean(trigamma(df/2))
        d0   = 2 * trigamma^-1(evar)
        s0^2 = exp(mean(e) + digamma(d0/2) - log(d0/2))

    Zero variances are floored at VARIANCE_FLOOR times the median variance
    before the log. If evar is not positive, Newton's method fails, or the
    estimates are not positive and finite, the prior falls back to
    d0 = inf with s0^2 = mean variance and a warning is issued.

    Parameters:
    -----------
    sigma2 : array-like
        Residual variances, one per protein
    df : float or array-like
        Residual degrees of freedom (scalar or one per protein)

    Returns:
    --------
    EmpiricalBayesPrior
    """
    x = np.asarray(sigma2, dtype=np.float64).ravel()
    df1 = np.broadcast_to(np.asarray(df, dtype=np.float64), x.shape)

    ok = np.isfinite(x) & np.isfinite(df1) & (df1 > 1e-15)
    n = int(ok.sum())
    if n == 0:
        raise DesignMatrixError("No proteins with usable residual variances for empirical Bayes")

    x = np.maximum(x[ok], 0.0)
    df1 = df1[ok]

    median = float(np.median(x))
    if median == 0:
        warnings.warn(
            "More than half of residual variances are exactly zero: eBayes unreliable",
            UserWarning,
            stacklevel=2,
        )
        median = 1.0
    elif np.any(x == 0):
        warnings.warn(
            "Zero sample variances detected, have been offset away from zero",
            UserWarning,
            stacklevel=2,
        )
    x = np.maximum(x, VARIANCE_FLOOR * median)

    if n < 2:
        return _fallback_prior(x, "fewer than two proteins to pool")

    half_df = df1 / 2.0
    e = np.log(x) - digamma(half_df) + np.log(half_df)
    emean = float(np.mean(e))
    evar = float(np.sum((e - emean) ** 2) / (n - 1)) - float(np.mean(polygamma(1, half_df)))

    if evar <= 0:
        return _fallback_prior(
            x, f"observed log-variance spread is below sampling noise (excess {evar:.3g})"
        )

    half_d0, converged = trigamma_inverse(evar)
    if not converged:
        return _fallback_prior(x, "trigamma inversion did not converge")

    d0 = 2.0 * half_d0
    s0 = float(np.exp(emean + digamma(d0 / 2.0) - np.log(d0 / 2.0)))
    if not (np.isfinite(d0) and d0 > 0 and np.isfinite(s0) and s0 > 0):
        return _fallback_prior(x, f"non-positive estimate (d0={d0}, s0^2={s0})")

    return EmpiricalBayesPrior(df_prior=float(d0), var_prior=s0)


def squeeze_var(sigma2, df, prior: EmpiricalBayesPrior) -> np.ndarray:
    """
    Posterior variances: (d0 * s0^2 + df * s^2) / (d0 + df).

    With an infinite prior df every protein receives the prior variance.
    """
    sigma2 = np.asarray(sigma2, dtype=np.float64)
    if prior.is_infinite:
        return np.full(sigma2.shape, prior.var_prior)
    df = np.asarray(df, dtype=np.float64)
    d0 = prior.df_prior
    return (d0 * prior.var_prior + df * sigma2) / (d0 + df)


def tmixture_vector(
    tstat, stdev_unscaled, df, proportion: float, v0_lim: Optional[Tuple[float, float]] = None
) -> float:
    """
    Estimate the prior variance of non-null coefficients from the top
    moderated t-statistics.

    Returns NaN when there are too few statistics.
    """
    tstat = np.asarray(tstat, dtype=np.float64)
    stdev_unscaled = np.asarray(stdev_unscaled, dtype=np.float64)
    df = np.broadcast_to(np.asarray(df, dtype=np.float64), tstat.shape)

    ok = np.isfinite(tstat)
    tstat = np.abs(tstat[ok])
    stdev_unscaled = stdev_unscaled[ok]
    df = df[ok].copy()

    n_features = len(tstat)
    n_target = int(np.ceil(proportion / 2.0 * n_features))
    if n_target < 1:
        return np.nan

    p = max(n_target / n_features, proportion)

    max_df = float(np.max(df))
    lower = df < max_df
    if np.any(lower):
        tail_p = t_dist.sf(tstat[lower], df[lower])
        # Tail probabilities that underflow keep their own t
        tstat[lower] = np.where(
            tail_p > 0, t_dist.isf(np.maximum(tail_p, np.finfo(float).tiny), max_df), tstat[lower]
        )
        df[lower] = max_df

    order = np.argsort(-tstat, kind="stable")[:n_target]
    tstat = tstat[order]
    v1 = stdev_unscaled[order] ** 2

    r = n_target - rankdata(tstat) + 1
    p0 = 2.0 * t_dist.sf(tstat, max_df)
    p_target = ((r - 0.5) / n_features - (1.0 - p) * p0) / p

    v0 = np.zeros(n_target)
    pos = p_target > p0
    if np.any(pos):
        q_target = t_dist.isf(p_target[pos] / 2.0, max_df)
        v0[pos] = v1[pos] * ((tstat[pos] / q_target) ** 2 - 1.0)

    if v0_lim is not None:
        v0 = np.clip(v0, v0_lim[0], v0_lim[1])

    return float(np.mean(v0))


def _moderated_f(t: np.ndarray, cov_coefficients: np.ndarray, df_total: np.ndarray):
    """Moderated F-statistic over all contrasts with non-zero variance."""
    n_features = t.shape[0]
    variances = np.diag(cov_coefficients)
    keep = variances > 0
    if not np.any(keep):
        return np.full(n_features, np.nan), np.full(n_features, np.nan)

    cov = cov_coefficients[np.ix_(keep, keep)]
    sd = np.sqrt(np.diag(cov))
    cor = cov / np.outer(sd, sd)

    eigenvalues, eigenvectors = np.linalg.eigh(cor)
    order = np.argsort(eigenvalues)[::-1]
    eigenvalues = eigenvalues[order]
    eigenvectors = eigenvectors[:, order]

    rank = int(np.sum(eigenvalues / eigenvalues[0] > 1e-8))
    Q = eigenvectors[:, :rank] / np.sqrt(eigenvalues[:rank]) / np.sqrt(rank)
    fstat = np.sum((t[:, keep] @ Q) ** 2, axis=1)

    if np.all(df_total > 1e6):
        p_value = chi2.sf(rank * fstat, rank)
    else:
        p_value = f_dist.sf(fstat, rank, df_total)
    return fstat, p_value


def ebayes(
    fit: LinearModelFit,
    proportion: float = 0.01,
    stdev_coef_lim: Tuple[float, float] = (0.1, 4.0),
) -> ModeratedFit:
    """
    Empirical Bayes moderation of a (contrast) linear model fit.

    Parameters:
    -----------
    fit : LinearModelFit
        Output of fit_linear_models or contrasts_fit
    proportion : float
        Assumed proportion of differentially abundant proteins (for B)
    stdev_coef_lim : tuple
        Limits on the standard deviation of non-null log fold changes (for B)

    Returns:
    --------
    ModeratedFit
    """
    if not 0 < proportion < 1:
        raise ValueError(f"proportion must be in (0, 1), got {proportion}")

    sigma2 = fit.sigma.to_numpy() ** 2
    df_residual = fit.df_residual.to_numpy()
    if np.all(df_residual <= 0):
        raise DesignMatrixError("No residual degrees of freedom in linear model fits")

    print("Estimating empirical Bayes variance prior...")
    prior = fit_f_dist(sigma2, df_residual)
    if prior.is_infinite:
        print(f"  Prior df: inf (fallback: {prior.message})")
    else:
        print(f"  Prior df: {prior.df_prior:.3f}")
    print(f"  Prior variance: {prior.var_prior:.4g}")

    s2_post = squeeze_var(sigma2, df_residual, prior)
    df_pooled = float(np.sum(df_residual))
    df_total = np.minimum(df_residual + prior.df_prior, df_pooled)

    coefficients = fit.coefficients.to_numpy()
    stdev_unscaled = fit.stdev_unscaled.to_numpy()
    estimable = stdev_unscaled > 0

    se = np.sqrt(s2_post)[:, np.newaxis] * stdev_unscaled
    with np.errstate(divide="ignore", invalid="ignore"):
        t = np.where(estimable, coefficients / se, 0.0)
    p_value = 2.0 * t_dist.sf(np.abs(t), df_total[:, np.newaxis])

    var_prior_lim = np.asarray(stdev_coef_lim, dtype=np.float64) ** 2 / prior.var_prior
    var_prior_coef = np.empty(t.shape[1])
    for j in range(t.shape[1]):
        var_prior_coef[j] = tmixture_vector(
            t[:, j], stdev_unscaled[:, j], df_total, proportion, tuple(var_prior_lim)
        )
    missing = ~np.isfinite(var_prior_coef)
    if np.any(missing):
        var_prior_coef[missing] = 1.0 / prior.var_prior
        warnings.warn(
            "Estimation of var.prior failed - set to default value", UserWarning, stacklevel=2
        )

    with np.errstate(divide="ignore", invalid="ignore"):
        r = (stdev_unscaled ** 2 + var_prior_coef) / stdev_unscaled ** 2
        t2 = t ** 2
        if prior.df_prior > LARGE_DF_PRIOR:
            kernel = t2 * (1.0 - 1.0 / r) / 2.0
        else:
            dft = df_total[:, np.newaxis]
            kernel = (1.0 + dft) / 2.0 * np.log((t2 + dft) / (t2 / r + dft))
        lods = np.log(proportion / (1.0 - proportion)) - np.log(r) / 2.0 + kernel
    lods = np.where(estimable, lods, np.nan)

    fstat, f_p_value = _moderated_f(t, fit.cov_coefficients.to_numpy(), df_total)

    index = fit.feature_names
    columns = fit.coefficients.columns
    zero_variance = pd.Series(sigma2 == 0, index=index, name="zero_variance")

    print(f"✓ Moderated statistics computed for {len(index)} proteins")
    if zero_variance.any():
        print(f"  {int(zero_variance.sum())} zero-variance proteins moderated towards the prior")

    return ModeratedFit(
        fit=fit,
        prior=prior,
        s2_post=pd.Series(s2_post, index=index, name="s2.post"),
        df_total=pd.Series(df_total, index=index, name="df.total"),
        t=pd.DataFrame(t, index=index, columns=columns),
        p_value=pd.DataFrame(p_value, index=index, columns=columns),
        lods=pd.DataFrame(lods, index=index, columns=columns),
        F=pd.Series(fstat, index=index, name="F"),
        F_p_value=pd.Series(f_p_value, index=index, name="F.p.value"),
        zero_variance=zero_variance,
        var_prior_coef=var_prior_coef,
        proportion=proportion,
    )
