"""
Module 'signup': jetons d'inscription à usage unique et parcours « payer puis s'inscrire ».
Les imports se font par sous-module (tokens, service, views) pour éviter les cycles avec users.
"""
