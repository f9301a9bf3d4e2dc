"""
Ensemble cross-validation training.

    folds -> MemberBuilder -> EnsembleBuilder -> Ensemble
                                              -> ChainBuilder -> EnsembleChain
"""
