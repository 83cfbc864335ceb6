# pogonode/models/todo_model.py
# -*- coding: utf-8 -*-
"""
pogonode — Pending user actions
-------------------------------
Actions requested from the UI (or anything else holding the state) are
queued on `state.todo` and executed one per position update cycle, in FIFO
order, by the controller.
"""

from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, Field, model_validator

# Calls the controller knows how to perform.
TODO_CALLS = ("level_up", "release_pokemon", "evolve_pokemon", "drop_items")

PokemonId = Union[int, str]


class TodoAction(BaseModel):
    """
    One queued action.

    Fields
    ------
    call:
        "level_up" | "release_pokemon" | "evolve_pokemon" | "drop_items".
        Anything else is kept and logged as unhandled when it is reached.
    pokemons:
        Creature ids to release (release_pokemon).
    pokemon:
        Creature id to evolve (evolve_pokemon).
    item_id / count:
        Item stack to recycle (drop_items).
    """

    call: str
    pokemons: List[PokemonId] = Field(default_factory=list)
    pokemon: Optional[PokemonId] = None
    item_id: Optional[int] = None
    count: Optional[int] = None

    @model_validator(mode="after")
    def _check_arguments(self) -> "TodoAction":
        if self.call == "release_pokemon" and not self.pokemons:
            raise ValueError("release_pokemon needs at least one id in 'pokemons'")
        if self.call == "evolve_pokemon" and self.pokemon is None:
            raise ValueError("evolve_pokemon needs 'pokemon'")
        if self.call == "drop_items" and (self.item_id is None or not self.count):
            raise ValueError("drop_items needs 'item_id' and a positive 'count'")
        return self

    @property
    def known(self) -> bool:
        return self.call in TODO_CALLS
